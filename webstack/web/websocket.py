"""
Websocket routes.

The upgrade request goes through the same pipeline as any other route, so a
rejected caller sees an ordinary HTTP status on the failed handshake. After
the upgrade the handle owns the connection.
"""

import json
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from aiohttp import WSCloseCode, WSMessage, WSMsgType, web

from ..core.exceptions import WebsocketClosedError
from ..utils.logging import logger
from .pipeline import Pipeline, maybe_await
from .types import HandleOptions, Request, dumps

_CLOSED_TYPES = (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED, WSMsgType.ERROR)


class WSConn:
    """Message oriented view of an upgraded websocket connection."""

    def __init__(self, ws: web.WebSocketResponse):
        self.ws = ws

    @property
    def closed(self) -> bool:
        return self.ws.closed

    async def read_message(self) -> WSMessage:
        """Wait for the next text or binary message."""
        message = await self.ws.receive()
        if message.type in _CLOSED_TYPES:
            raise WebsocketClosedError(f"websocket closed: {message.type.name}")
        return message

    async def write_message(self, data: Union[str, bytes]):
        if isinstance(data, (bytes, bytearray)):
            await self.ws.send_bytes(bytes(data))
        else:
            await self.ws.send_str(data)

    async def read_json(self, into: Optional[type] = None) -> Any:
        message = await self.read_message()
        value = json.loads(message.data)
        if into is not None:
            return into(**value)
        return value

    async def write_json(self, value: Any):
        await self.ws.send_str(dumps(value))

    async def close(self, code: int = WSCloseCode.OK, message: bytes = b''):
        if not self.ws.closed:
            await self.ws.close(code=code, message=message)

    def __aiter__(self) -> AsyncIterator[WSMessage]:
        return self

    async def __anext__(self) -> WSMessage:
        try:
            return await self.read_message()
        except WebsocketClosedError:
            raise StopAsyncIteration


SocketHandle = Callable[[Request, WSConn], Union[None, Awaitable[None]]]


def register_socket(server, path: str, handle: SocketHandle, options: Optional[HandleOptions] = None):
    logger.debug(f"Register websocket endpoint {path}")
    pipeline = Pipeline(server, options or HandleOptions(), 'Websocket')

    async def invoke(request: Request) -> web.StreamResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request.http)
        conn = WSConn(ws)
        try:
            await maybe_await(handle(request, conn))
        except Exception as e:
            logger.error(f"Recovered from fault during websocket handle {request.path}: {e!r}", exc_info=True)
            try:
                await conn.close(code=WSCloseCode.INTERNAL_ERROR, message=b'Server Error')
            except ConnectionResetError:
                pass
        return ws

    server.add_route('GET', path, pipeline.wrap(invoke))
