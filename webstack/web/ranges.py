"""
Byte range aware response writer.

Turns an HTTPResponse carrying a reader into a 200, 206 or 416 response
depending on the request's Range header. Several satisfiable ranges produce a
multipart/byteranges body with one part per range, in the order requested.
Ranges that add up to more than the resource itself get the full body
with a 200 instead.
"""

import inspect
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

from aiohttp import hdrs, web

from ..core.exceptions import RangeError
from ..utils.logging import logger
from .types import CHUNK_SIZE, HTTPResponse, Writer

_RANGE_SPEC = re.compile(r'^([0-9]*)-([0-9]*)$')


@dataclass(frozen=True)
class RangeSpec:
    """An inclusive byte span already resolved against the resource length."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        return f"bytes {self.start}-{self.end}/{total}"


def parse_range_header(value: str, total: int) -> List[RangeSpec]:
    """
    Parse a ``bytes=`` Range header against a resource of ``total`` bytes.

    Ends past the resource are clamped to its last byte. Ranges starting past
    the end are dropped; if that leaves nothing, or the header is malformed,
    RangeError is raised.
    """
    if total <= 0:
        raise RangeError(total, "Empty resource")

    unit, sep, specs = value.partition('=')
    if not sep or unit.strip().lower() != 'bytes':
        raise RangeError(total, f"Unsupported range unit: {unit.strip()}")

    ranges = []
    for candidate in specs.split(','):
        candidate = candidate.strip()
        if not candidate:
            continue
        match = _RANGE_SPEC.match(candidate)
        if not match or not (match.group(1) or match.group(2)):
            raise RangeError(total, f"Malformed range: {candidate}")
        first, last = match.groups()

        if not first:
            # Suffix form: the last n bytes
            suffix = int(last)
            if suffix == 0:
                continue
            ranges.append(RangeSpec(max(0, total - suffix), total - 1))
            continue

        start = int(first)
        end = int(last) if last else total - 1
        if end < start:
            raise RangeError(total, f"Malformed range: {candidate}")
        if start >= total:
            continue
        ranges.append(RangeSpec(start, min(end, total - 1)))

    if not ranges:
        raise RangeError(total)
    return ranges


async def _call(method, *args):
    result = method(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _seekable(reader) -> bool:
    if not hasattr(reader, 'seek'):
        return False
    if hasattr(reader, 'seekable'):
        return bool(await _call(reader.seekable))
    return True


async def _close(reader):
    if hasattr(reader, 'close'):
        await _call(reader.close)


async def _copy(reader, stream: web.StreamResponse, remaining: Optional[int] = None):
    while remaining is None or remaining > 0:
        size = CHUNK_SIZE if remaining is None else min(CHUNK_SIZE, remaining)
        chunk = await _call(reader.read, size)
        if not chunk:
            break
        await stream.write(chunk)
        if remaining is not None:
            remaining -= len(chunk)


def _part_header(boundary: str, content_type: Optional[str], spec: RangeSpec, total: int) -> bytes:
    lines = [f"--{boundary}"]
    if content_type:
        lines.append(f"Content-Type: {content_type}")
    lines.append(f"Content-Range: {spec.content_range(total)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode('latin-1')


class RangeWriter:
    """Writes one HTTPResponse for one request."""

    def __init__(self, request: web.Request, response: HTTPResponse,
                 writer: Optional[Writer] = None, ignore_ranges: bool = False):
        self.request = request
        self.response = response
        self.writer = writer
        self.ignore_ranges = ignore_ranges
        self.head = request.method == hdrs.METH_HEAD
        self.total = response.content_length

    def _new_stream(self) -> web.StreamResponse:
        response = self.response
        stream = web.StreamResponse(status=response.status)
        if self.writer is not None:
            self.writer.apply(stream)
        for key, value in response.headers.items():
            stream.headers[key] = value
        if response.content_type:
            stream.headers[hdrs.CONTENT_TYPE] = response.content_type
        for cookie in response.cookies:
            cookie.apply(stream)
        return stream

    async def _ranges_supported(self) -> bool:
        return (not self.ignore_ranges
                and self.response.reader is not None
                and self.response.status == 200
                and bool(self.total)
                and await _seekable(self.response.reader))

    async def send(self) -> web.StreamResponse:
        stream = self._new_stream()
        reader = self.response.reader
        try:
            supported = await self._ranges_supported()
            if supported:
                stream.headers[hdrs.ACCEPT_RANGES] = 'bytes'

            range_header = self.request.headers.get(hdrs.RANGE)
            if not supported or not range_header:
                await self._send_full(stream)
                return stream

            try:
                ranges = parse_range_header(range_header, self.total)
            except RangeError as e:
                logger.debug(f"Rejecting range '{range_header}' for {self.request.path}: {e.message}")
                await self._send_unsatisfiable(stream)
                return stream

            if sum(spec.length for spec in ranges) > self.total:
                # Asking for more bytes than the resource holds, send it once instead
                logger.debug(f"Ranges in '{range_header}' exceed {self.total} bytes, sending full body")
                await self._send_full(stream)
                return stream

            if len(ranges) == 1:
                await self._send_single(stream, ranges[0])
            else:
                await self._send_multipart(stream, ranges)
            return stream
        except ConnectionResetError:
            logger.debug(f"Client went away while writing {self.request.path}")
            return stream
        finally:
            if reader is not None:
                await _close(reader)

    async def _send_full(self, stream: web.StreamResponse):
        reader = self.response.reader
        if reader is None:
            stream.content_length = 0
        elif self.total is not None:
            stream.content_length = self.total
        await stream.prepare(self.request)
        if reader is not None and not self.head:
            await _copy(reader, stream, self.total)
        await stream.write_eof()

    async def _send_unsatisfiable(self, stream: web.StreamResponse):
        stream.set_status(416)
        stream.headers[hdrs.CONTENT_RANGE] = f"bytes */{self.total}"
        stream.content_length = 0
        await stream.prepare(self.request)
        await stream.write_eof()

    async def _send_single(self, stream: web.StreamResponse, spec: RangeSpec):
        stream.set_status(206)
        stream.headers[hdrs.CONTENT_RANGE] = spec.content_range(self.total)
        stream.content_length = spec.length
        await stream.prepare(self.request)
        if not self.head:
            await _call(self.response.reader.seek, spec.start)
            await _copy(self.response.reader, stream, spec.length)
        await stream.write_eof()

    async def _send_multipart(self, stream: web.StreamResponse, ranges: List[RangeSpec]):
        boundary = uuid.uuid4().hex
        content_type = self.response.content_type or stream.headers.get(hdrs.CONTENT_TYPE)
        parts = [(spec, _part_header(boundary, content_type, spec, self.total)) for spec in ranges]
        closing = f"--{boundary}--\r\n".encode('latin-1')

        stream.set_status(206)
        stream.headers[hdrs.CONTENT_TYPE] = f"multipart/byteranges; boundary={boundary}"
        stream.content_length = sum(len(header) + spec.length + 2 for spec, header in parts) + len(closing)
        await stream.prepare(self.request)

        if not self.head:
            reader = self.response.reader
            for spec, header in parts:
                await stream.write(header)
                await _call(reader.seek, spec.start)
                await _copy(reader, stream, spec.length)
                await stream.write(b"\r\n")
            await stream.write(closing)
        await stream.write_eof()


async def write_http_response(request: web.Request, response: HTTPResponse,
                              writer: Optional[Writer] = None,
                              ignore_ranges: bool = False) -> web.StreamResponse:
    """Send ``response`` honouring the request's Range header."""
    return await RangeWriter(request, response, writer, ignore_ranges).send()
