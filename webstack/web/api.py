"""
JSON API routes.

API handles return data (or an APIResponse) and every response is wrapped in
the common envelope ``{"Data": ..., "Error": {"Code": ..., "Message": ...}}``.
"""

from typing import Any, Awaitable, Callable, Optional, Union

from aiohttp import web

from ..core.exceptions import Error
from ..utils.logging import logger
from .pipeline import Pipeline, maybe_await
from .types import APIResponse, HandleOptions, Request, dumps

APIHandle = Callable[[Request], Union[Any, Awaitable[Any]]]


class API:
    """Registers JSON API endpoints on a Server."""

    def __init__(self, server):
        self.server = server

    def get(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP GET request handle"""
        self._register('GET', path, handle, options)

    def head(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP HEAD request handle"""
        self._register('HEAD', path, handle, options)

    def options(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP OPTIONS request handle"""
        self._register('OPTIONS', path, handle, options)

    def post(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP POST request handle"""
        self._register('POST', path, handle, options)

    def put(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP PUT request handle"""
        self._register('PUT', path, handle, options)

    def patch(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP PATCH request handle"""
        self._register('PATCH', path, handle, options)

    def delete(self, path: str, handle: APIHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP DELETE request handle"""
        self._register('DELETE', path, handle, options)

    def _register(self, method: str, path: str, handle: APIHandle, options: Optional[HandleOptions]):
        logger.debug(f"Register API endpoint {method} {path}")
        pipeline = Pipeline(self.server, options or HandleOptions(), 'API')
        self.server.add_route(method, path, pipeline.wrap(self._invoker(handle)))

    def _invoker(self, handle: APIHandle):
        async def invoke(request: Request) -> web.StreamResponse:
            try:
                result = await maybe_await(handle(request))
                if not isinstance(result, APIResponse):
                    result = APIResponse(data=result)
            except Error as e:
                result = APIResponse(error=e)
            except web.HTTPException as e:
                if e.status < 400:
                    raise
                result = APIResponse(error=Error(e.status, e.reason))
            except Exception as e:
                logger.error(f"Recovered from fault during API handle {request.method} {request.path}: {e!r}",
                             exc_info=True)
                result = APIResponse(error=Error.server_error())
            return await self._emit(request, result)

        return invoke

    async def _emit(self, request: Request, result: APIResponse) -> web.StreamResponse:
        try:
            body = dumps(result.envelope())
        except (TypeError, ValueError) as e:
            logger.error(f"Error encoding response for {request.method} {request.path}: {e}")
            result = APIResponse(error=Error.server_error())
            body = dumps(result.envelope())

        status = result.status
        if not 100 <= status <= 599:
            logger.error(f"Handle for {request.method} {request.path} reported invalid status {status}")
            status = 500

        response = web.Response(text=body, status=status, content_type='application/json')
        for key, value in result.headers.items():
            response.headers[key] = value
        for cookie in result.cookies:
            cookie.apply(response)

        try:
            await response.prepare(request.http)
            await response.write_eof()
        except ConnectionResetError:
            pass
        except Exception as e:
            logger.error(f"Error writing response for {request.method} {request.http.url}: {e}")
        return response
