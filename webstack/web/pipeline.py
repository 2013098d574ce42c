"""
The dispatch pipeline shared by API, HTTP and websocket routes.

Stages run in a fixed order and each may end the request with its own
response:

    pre-handle hook -> rate limit -> body size -> authentication -> handler

The handler stage, including its fault boundary and how its result is
written, belongs to the route kind; the pipeline only admits requests to it
and writes the access log for every outcome.
"""

import inspect
import time
from typing import Awaitable, Callable, Optional, Union

from aiohttp import web

from ..core.exceptions import AdmissionError, AuthError, Error, PayloadError
from ..utils.logging import logger
from ..utils.networking import real_remote_addr
from .identity import Identity
from .types import HandleOptions, Request

Invoke = Callable[[Request], Awaitable[web.StreamResponse]]


async def maybe_await(value):
    if inspect.isawaitable(value):
        value = await value
    return value


def error_response(error: Error) -> web.Response:
    """The uniform ``{"Code": ..., "Message": ...}`` rejection body."""
    return web.json_response(error.to_dict(), status=error.code)


class Pipeline:
    """Admission stages for one registered route."""

    def __init__(self, server, options: HandleOptions, kind: str):
        self.server = server
        self.options = options
        self.kind = kind

    async def admit(self, raw: web.Request) -> Union[web.StreamResponse, Request]:
        """Run every guard. Returns the enriched Request, or the response that ended it."""
        options = self.options
        trust_proxy = self.server.options.trust_proxy_headers

        if options.pre_handle is not None:
            aborted = await maybe_await(options.pre_handle(raw))
            if aborted is not None:
                logger.debug(f"Pre-handle aborted {raw.method} {raw.path}")
                return aborted

        if self.server.is_rate_limited(raw):
            logger.warning(f"Rate limiting {real_remote_addr(raw, trust_proxy)} on {raw.method} {raw.path}")
            return error_response(AdmissionError())

        if options.max_body_length > 0:
            length = raw.content_length
            if length is not None and length > options.max_body_length:
                logger.error(f"Rejecting {self.kind} request with oversized body: "
                             f"{length} > {options.max_body_length}")
                return error_response(PayloadError())

        identity = Identity.absent()
        if options.authenticate_method is not None:
            identity = Identity.coerce(await maybe_await(options.authenticate_method(raw)))
            if not identity.present:
                if options.unauthorized_method is not None:
                    return await maybe_await(options.unauthorized_method(raw))
                logger.warning(f"Rejected request to authenticated {self.kind} endpoint "
                               f"{raw.method} {raw.url} from {real_remote_addr(raw, trust_proxy)}")
                return error_response(AuthError())

        return Request(
            raw,
            parameters=dict(raw.match_info),
            identity=identity,
            max_body_length=options.max_body_length,
            trust_proxy_headers=trust_proxy,
        )

    def log_request(self, raw: web.Request, status: Optional[int], started: float):
        if self.options.dont_log_requests:
            return
        elapsed = time.perf_counter() - started
        remote_addr = real_remote_addr(raw, self.server.options.trust_proxy_headers)
        logger.log(
            self.server.options.request_log_level,
            f"{self.kind} request {raw.method} {raw.path} {status} {elapsed * 1000:.2f}ms",
            extra={
                'remote_addr': remote_addr,
                'method': raw.method,
                'path': raw.path,
                'status': status,
                'elapsed_ms': round(elapsed * 1000, 2),
            },
        )

    def wrap(self, invoke: Invoke):
        """Build the aiohttp handler: admission, then ``invoke``, then the access log."""
        async def handle(raw: web.Request) -> web.StreamResponse:
            started = time.perf_counter()
            status = None
            try:
                outcome = await self.admit(raw)
                if isinstance(outcome, Request):
                    outcome = await invoke(outcome)
                status = outcome.status if outcome is not None else None
                return outcome
            except web.HTTPException as e:
                status = e.status
                raise
            finally:
                self.log_request(raw, status, started)

        return handle
