"""
Request, response and option types shared by every route kind.
"""

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from aiohttp import web
from multidict import CIMultiDict

from ..core.exceptions import Error, PayloadError
from ..utils.networking import real_remote_addr
from .identity import Identity

CHUNK_SIZE = 64 * 1024

# Hooks may be plain functions or coroutine functions.
PreHandleHook = Callable[[web.Request], Union[Optional[web.StreamResponse], Awaitable[Optional[web.StreamResponse]]]]
AuthenticateHook = Callable[[web.Request], Any]
UnauthorizedHook = Callable[[web.Request], Union[web.StreamResponse, Awaitable[web.StreamResponse]]]


@dataclass(frozen=True)
class HandleOptions:
    """
    Per-route configuration.

    pre_handle: called before anything else. Returning a response aborts the
        request with that response, returning None carries on.
    authenticate_method: returns the caller's Identity (or a bare value,
        where only None means "nobody"). Unset means the route is public.
    unauthorized_method: builds the response for callers without an identity.
        Unset means a 401 error envelope.
    max_body_length: largest request body accepted, in bytes. 0 is unlimited.
    dont_log_requests: skip the access log for this route.
    """
    pre_handle: Optional[PreHandleHook] = None
    authenticate_method: Optional[AuthenticateHook] = None
    unauthorized_method: Optional[UnauthorizedHook] = None
    max_body_length: int = 0
    dont_log_requests: bool = False


@dataclass
class ServerOptions:
    """Server wide settings."""
    request_log_level: int = logging.INFO
    max_requests_per_second: int = 0
    rate_limit_burst: Optional[int] = None
    rate_limit_idle_ttl: float = 600.0
    ignore_http_range_requests: bool = False
    trust_proxy_headers: bool = False
    client_max_size: int = 1024**2

    @classmethod
    def from_config(cls, config) -> 'ServerOptions':
        return cls(
            request_log_level=config.request_log_level,
            max_requests_per_second=config.max_requests_per_second,
            rate_limit_burst=config.rate_limit_burst,
            rate_limit_idle_ttl=config.rate_limit_idle_ttl,
            ignore_http_range_requests=config.ignore_range_requests,
            trust_proxy_headers=config.trust_proxy_headers,
            client_max_size=config.max_upload_size,
        )


@dataclass
class Cookie:
    name: str
    value: str
    path: str = '/'
    domain: Optional[str] = None
    max_age: Optional[int] = None
    expires: Optional[str] = None
    secure: Optional[bool] = None
    httponly: Optional[bool] = None
    samesite: Optional[str] = None

    def apply(self, response: web.StreamResponse):
        response.set_cookie(
            self.name, self.value,
            path=self.path,
            domain=self.domain,
            max_age=self.max_age,
            expires=self.expires,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


@dataclass
class HTTPResponse:
    """
    What an HTTP handler returns.

    ``reader`` is any binary file object, synchronous (``io.BytesIO``, ``open``)
    or asynchronous (``aiofiles``). Byte ranges are only served when the
    reader can seek and ``content_length`` is known.
    """
    reader: Any = None
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: List[Cookie] = field(default_factory=list)
    content_type: Optional[str] = None
    content_length: Optional[int] = None


@dataclass
class APIResponse:
    """What an API handler returns when it needs more than just data."""
    data: Any = None
    error: Optional[Error] = None
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: List[Cookie] = field(default_factory=list)

    def envelope(self) -> Dict[str, Any]:
        body = {}
        if self.data is not None:
            body['Data'] = self.data
        if self.error is not None:
            body['Error'] = self.error.to_dict()
        return body

    @property
    def status(self) -> int:
        return self.error.code if self.error is not None else 200


def _json_default(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


class Request:
    """
    One inbound call as seen by a handler.

    ``identity`` is present only when the route has an authenticate hook and
    it recognised the caller; ``user_data`` is the identity's value or None.
    """

    def __init__(self, http: web.Request, parameters: Optional[Dict[str, str]] = None,
                 identity: Identity = None, max_body_length: int = 0,
                 trust_proxy_headers: bool = False, body: Optional[bytes] = None):
        self.http = http
        self.parameters = dict(parameters or {})
        self.identity = identity if identity is not None else Identity.absent()
        self.max_body_length = max_body_length
        self.trust_proxy_headers = trust_proxy_headers
        self._body = body

    @property
    def user_data(self) -> Any:
        return self.identity.get()

    @property
    def method(self) -> str:
        return self.http.method

    @property
    def path(self) -> str:
        return self.http.path

    @property
    def headers(self):
        return self.http.headers

    def client_ip_address(self) -> str:
        return real_remote_addr(self.http, self.trust_proxy_headers)

    async def body(self) -> bytes:
        """Read the whole request body, enforcing the route's size limit."""
        if self._body is not None:
            return self._body

        limit = self.max_body_length
        chunks = []
        size = 0
        async for chunk in self.http.content.iter_chunked(CHUNK_SIZE):
            size += len(chunk)
            if limit and size > limit:
                raise PayloadError()
            chunks.append(chunk)
        self._body = b''.join(chunks)
        return self._body

    async def decode(self, into: Optional[type] = None) -> Any:
        """
        Parse the body as JSON.

        With ``into`` set the decoded object is passed as keyword arguments to
        it (a dataclass, say). Malformed input raises a 400 Error.
        """
        raw = await self.body()
        try:
            value = json.loads(raw or b'null')
        except ValueError:
            raise Error.bad_request()
        if into is None:
            return value
        if not isinstance(value, dict):
            raise Error.bad_request()
        try:
            return into(**value)
        except TypeError:
            raise Error.bad_request()


class Writer:
    """
    Lets an HTTP handler shape or stream the response itself.

    Headers and cookies set here are merged into the response built from the
    returned HTTPResponse. Once ``write`` has been called the response is on
    the wire and the returned HTTPResponse is ignored.
    """

    def __init__(self, request: web.Request):
        self._request = request
        self.status = 200
        self.headers = CIMultiDict()
        self.cookies: List[Cookie] = []
        self._stream: Optional[web.StreamResponse] = None

    @property
    def started(self) -> bool:
        return self._stream is not None

    @property
    def response(self) -> Optional[web.StreamResponse]:
        return self._stream

    def set_cookie(self, name: str, value: str, **kwargs):
        self.cookies.append(Cookie(name, value, **kwargs))

    def apply(self, response: web.StreamResponse):
        for key, value in self.headers.items():
            response.headers[key] = value
        for cookie in self.cookies:
            cookie.apply(response)

    async def write(self, data: bytes):
        if self._stream is None:
            self._stream = web.StreamResponse(status=self.status)
            self.apply(self._stream)
            await self._stream.prepare(self._request)
        await self._stream.write(data)

    async def finish(self):
        if self._stream is not None:
            await self._stream.write_eof()
