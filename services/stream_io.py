"""Byte- and line-level readers for long-running HTTP streams.

Layering, innermost first:

- ``ResponseByteSource``: chunks from a live ``httpx.Response`` body
- ``TimeoutReader``:      inactivity timeout that restarts on every read
- ``LineReader``:         newline-delimited lines of unbounded length

Every reader exposes ``read()`` returning ``b""`` at end of stream and an
idempotent ``aclose()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import httpx

from config.settings import DEFAULT_STREAM_BUFFER_SIZE
from errors import StreamTimeoutError

logger = logging.getLogger(__name__)


class ByteSource(Protocol):
    async def read(self) -> bytes: ...

    async def aclose(self) -> None: ...


class ResponseByteSource:
    """Expose a streamed ``httpx.Response`` body as a :class:`ByteSource`.

    Chunks are handed over as soon as the transport delivers them. A read
    that its caller abandons (cancelled by a deadline) keeps running in a
    shielded task and the next ``read()`` picks up its result, so the body
    iterator is never torn down mid-stream.
    """

    def __init__(self, response: httpx.Response | None) -> None:
        self._response = response
        self._chunks = response.aiter_bytes() if response is not None else None
        self._pending: asyncio.Future[bytes] | None = None
        self._closed = response is None

    async def read(self) -> bytes:
        if self._chunks is None or self._closed:
            return b""
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._next_chunk())
        pending = self._pending
        try:
            return await asyncio.shield(pending)
        finally:
            # Still running after a caller cancellation: kept for the next read
            if pending.done():
                self._pending = None

    async def _next_chunk(self) -> bytes:
        # aiter_bytes never yields empty chunks; b"" is reserved for EOF
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return b""

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
        await self._chunks.aclose()
        await self._response.aclose()


class TimeoutReader:
    """Fail a read when no data arrives within ``timeout`` seconds.

    The window is per read, not per stream: each successful read starts
    a fresh window for the next one. ``timeout`` <= 0 disables the check
    and reads pass straight through.

    A read that loses the race is not abandoned. It stays pending and the
    next ``read()`` resumes waiting on it, so bytes that arrive late are
    not lost and timed-out reads do not pile up in the background.
    ``aclose()`` cancels it.
    """

    def __init__(self, source: ByteSource, timeout: float | None) -> None:
        self._source = source
        self._timeout = timeout or 0
        # One reader at a time: overlapping calls queue here
        self._lock = asyncio.Lock()
        self._pending: asyncio.Future[bytes] | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    async def read(self) -> bytes:
        async with self._lock:
            if self._timeout <= 0:
                return await self._source.read()

            if self._pending is None:
                self._pending = asyncio.ensure_future(self._source.read())

            done, _ = await asyncio.wait({self._pending}, timeout=self._timeout)
            if not done:
                logger.debug("Stream read timed out after %ss", self._timeout)
                raise StreamTimeoutError(self._timeout)

            finished, self._pending = self._pending, None
            return finished.result()

    async def aclose(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
        if self._source is not None:
            await self._source.aclose()


class LineReader:
    """Read ``\\n``-terminated lines of any length from a :class:`ByteSource`.

    Bytes accumulate in a growable buffer until a terminator shows up, so
    a line may span any number of underlying chunks. ``\\r\\n`` endings are
    accepted. Lines are returned as raw bytes without the terminator.
    """

    def __init__(self, source: ByteSource, buffer_size: int = DEFAULT_STREAM_BUFFER_SIZE) -> None:
        self._source = source
        # Initial size hint only; the buffer grows with the line
        self.buffer_size = buffer_size
        self._buffer = bytearray()
        self._eof = False

    async def read_line(self) -> bytes | None:
        """Return the next line, or ``None`` once the stream is exhausted.

        A final line without a terminator is returned once before ``None``.
        :class:`StreamTimeoutError` propagates as-is and is not end of stream.
        """
        scan_from = 0
        while True:
            end = self._buffer.find(b"\n", scan_from)
            if end >= 0:
                line = bytes(self._buffer[:end])
                del self._buffer[: end + 1]
                return _strip_cr(line)

            if self._eof:
                if not self._buffer:
                    return None
                line = bytes(self._buffer)
                self._buffer.clear()
                return _strip_cr(line)

            scan_from = len(self._buffer)
            chunk = await self._source.read()
            if chunk:
                self._buffer.extend(chunk)
            else:
                self._eof = True

    async def aclose(self) -> None:
        await self._source.aclose()


def _strip_cr(line: bytes) -> bytes:
    return line[:-1] if line.endswith(b"\r") else line


def open_line_reader(
    response: httpx.Response | None,
    buffer_size: int | None = None,
    read_timeout: float | None = None,
) -> LineReader:
    """Build the reader chain for a streamed response body.

    ``buffer_size`` <= 0 falls back to the default; the timeout layer is
    only inserted when ``read_timeout`` is positive.
    """
    if not buffer_size or buffer_size <= 0:
        buffer_size = DEFAULT_STREAM_BUFFER_SIZE
    source: ByteSource = ResponseByteSource(response)
    if read_timeout and read_timeout > 0:
        source = TimeoutReader(source, read_timeout)
    return LineReader(source, buffer_size)
