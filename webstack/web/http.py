"""
Plain HTTP routes.

HTTP handles receive the Request and a Writer and return an HTTPResponse,
which is written out by the range writer.
"""

from typing import Awaitable, Callable, Optional, Union

from aiohttp import web

from ..core.exceptions import Error, HandlerFault
from ..utils.logging import logger
from .pipeline import Pipeline, error_response, maybe_await
from .ranges import write_http_response
from .static import StaticFiles
from .types import HandleOptions, HTTPResponse, Request, Writer

HTTPHandle = Callable[[Request, Writer], Union[Optional[HTTPResponse], Awaitable[Optional[HTTPResponse]]]]


def terminate(request: Request, writer: Writer, fault: HandlerFault) -> web.StreamResponse:
    """Log a handler fault and drop the connection it happened on."""
    logger.error(f"Recovered from fault during HTTP handle {fault.method} {fault.route}: {fault.original!r}",
                 exc_info=fault.original)
    transport = request.http.transport
    if transport is not None:
        transport.close()
    if writer.started:
        return writer.response
    return web.Response(status=500)


class HTTP:
    """Registers plain HTTP endpoints on a Server."""

    def __init__(self, server):
        self.server = server

    def get(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP GET request handle"""
        self._register(('GET',), path, handle, options)

    def head(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP HEAD request handle"""
        self._register(('HEAD',), path, handle, options)

    def get_head(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register one handle for both GET and HEAD. HEAD responses carry the same headers and no body."""
        self._register(('GET', 'HEAD'), path, handle, options)

    def options(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP OPTIONS request handle"""
        self._register(('OPTIONS',), path, handle, options)

    def post(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP POST request handle"""
        self._register(('POST',), path, handle, options)

    def put(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP PUT request handle"""
        self._register(('PUT',), path, handle, options)

    def patch(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP PATCH request handle"""
        self._register(('PATCH',), path, handle, options)

    def delete(self, path: str, handle: HTTPHandle, options: Optional[HandleOptions] = None):
        """Register a new HTTP DELETE request handle"""
        self._register(('DELETE',), path, handle, options)

    def static(self, prefix: str, directory: str, options: Optional[HandleOptions] = None):
        """Serve the files in ``directory`` below the URL ``prefix``."""
        if not prefix.startswith('/'):
            prefix = '/' + prefix
        if not prefix.endswith('/'):
            prefix = prefix + '/'
        logger.info(f"Serving static files from {directory} at {prefix}")
        self.get_head(prefix + '{filepath:.*}', StaticFiles(directory), options)

    def _register(self, methods, path: str, handle: HTTPHandle, options: Optional[HandleOptions]):
        pipeline = Pipeline(self.server, options or HandleOptions(), 'HTTP')
        handler = pipeline.wrap(self._invoker(handle))
        for method in methods:
            logger.debug(f"Register HTTP endpoint {method} {path}")
            self.server.add_route(method, path, handler)

    def _invoker(self, handle: HTTPHandle):
        async def invoke(request: Request) -> web.StreamResponse:
            writer = Writer(request.http)
            try:
                result = await maybe_await(handle(request, writer))
            except web.HTTPException:
                raise
            except Error as e:
                if writer.started:
                    return terminate(request, writer, HandlerFault(request.path, request.method, e))
                return error_response(e)
            except Exception as e:
                return terminate(request, writer, HandlerFault(request.path, request.method, e))

            if writer.started:
                await writer.finish()
                return writer.response

            try:
                return await write_http_response(
                    request.http,
                    result if result is not None else HTTPResponse(),
                    writer,
                    ignore_ranges=self.server.options.ignore_http_range_requests,
                )
            except Exception as e:
                return terminate(request, writer, HandlerFault(request.path, request.method, e))

        return invoke
