"""Streaming data analysis — start, read and cancel.

``analyze_data_stream`` POSTs a question to the analysis endpoint and
returns a :class:`DataAnalysisStream` over the live SSE body. The stream
holds an open connection: always release it, preferably with
``async with``::

    stream = await analyze_data_stream(DataAnalysisRequest(question="..."))
    async with stream:
        async for event in stream:
            if event.request_id:
                request_id = event.request_id
            if event.is_terminal:
                break

``cancel_analyze`` stops the server-side job by the ``request_id`` taken
from the ``init`` event. It is independent of the stream and does not
close it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from config.settings import get_settings
from errors import HTTPError, RequestValidationError, UnexpectedContentTypeError
from models.data_analysis import CancelAnalyzeRequest, CancelAnalyzeResponse, DataAnalysisRequest
from models.stream_event import StreamEvent
from services.catalog_client import MIME_JSON, CatalogClient, get_catalog_client
from services.sse_parser import SSEEventParser
from services.stream_io import open_line_reader

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/byoa/api/v1/data_asking/analyze"
CANCEL_PATH = "/byoa/api/v1/data_asking/cancel"

MIME_EVENT_STREAM = "text/event-stream"
STREAM_CONTENT_TYPES = (MIME_EVENT_STREAM, "text/plain")


class DataAnalysisStream:
    """One live analysis stream.

    Reads must not overlap: call :meth:`read_event` (or iterate) from one
    task at a time. :meth:`aclose` is idempotent.
    """

    def __init__(
        self,
        response: httpx.Response | None,
        status_code: int = 0,
        headers: httpx.Headers | None = None,
        buffer_size: int = 0,
        read_timeout: float = 0,
    ) -> None:
        self._response = response
        self.status_code = status_code
        self.headers = httpx.Headers(headers) if headers is not None else httpx.Headers()
        self.buffer_size = buffer_size
        self.read_timeout = read_timeout
        self._parser: SSEEventParser | None = None
        self._closed = response is None

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_event(self) -> StreamEvent | None:
        """Read the next event; ``None`` means the stream is complete.

        Raises :class:`~errors.StreamTimeoutError` when ``read_timeout`` is
        set and no data arrives within it.
        """
        if self._closed:
            return None
        if self._parser is None:
            lines = open_line_reader(self._response, self.buffer_size, self.read_timeout)
            self._parser = SSEEventParser(lines)
        return await self._parser.next_event()

    async def aclose(self) -> None:
        """Release the underlying response body."""
        if self._closed:
            return
        self._closed = True
        if self._parser is not None:
            await self._parser.aclose()
        elif self._response is not None:
            await self._response.aclose()
        logger.debug("Analysis stream closed")

    async def __aenter__(self) -> DataAnalysisStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __aiter__(self) -> DataAnalysisStream:
        return self

    async def __anext__(self) -> StreamEvent:
        event = await self.read_event()
        if event is None:
            raise StopAsyncIteration
        return event


def _analysis_body(request: DataAnalysisRequest | Mapping[str, Any] | None) -> dict[str, Any]:
    if request is None:
        raise RequestValidationError("request payload cannot be None")
    if isinstance(request, DataAnalysisRequest):
        body = request.to_wire()
    else:
        body = dict(request)
    question = body.get("question")
    if not isinstance(question, str) or not question.strip():
        raise RequestValidationError("question cannot be empty")
    return body


async def analyze_data_stream(
    request: DataAnalysisRequest | Mapping[str, Any] | None,
    *,
    client: CatalogClient | None = None,
    buffer_size: int | None = None,
    read_timeout: float | None = None,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, Any] | None = None,
    request_id: str | None = None,
) -> DataAnalysisStream:
    """Start a data analysis and return its event stream.

    Event types include ``init`` (first, carries ``request_id`` and
    ``session_title``), ``classification``, ``decomposition``,
    ``step_start``, ``step_complete``, ``chunks`` / ``answer_chunk``,
    ``complete`` and ``error``.

    Args:
        request: The analysis request; ``question`` must be non-blank.
        client: Started :class:`CatalogClient`; defaults to the singleton.
        buffer_size: Initial line buffer in bytes (grows as needed).
        read_timeout: Inactivity timeout between reads, seconds; 0 disables.

    Raises:
        RequestValidationError: ``request`` is None or has no question.
        HTTPError: The service answered with a non-2xx status.
        UnexpectedContentTypeError: 2xx, but not an event stream.
    """
    body = _analysis_body(request)

    settings = get_settings()
    if buffer_size is None:
        buffer_size = settings.stream_buffer_size
    if read_timeout is None:
        read_timeout = settings.stream_read_timeout

    client = client or get_catalog_client()
    call_headers = dict(headers or {})
    call_headers["Content-Type"] = MIME_JSON
    call_headers["Accept"] = MIME_EVENT_STREAM

    response = await client.send_raw(
        "POST", ANALYZE_PATH,
        json_body=body,
        headers=call_headers,
        params=params,
        request_id=request_id,
        # No read timeout: the stream may legitimately stay quiet for long
        # stretches. Inactivity is bounded per read by read_timeout instead.
        timeout=httpx.Timeout(client.timeout, read=None),
    )

    if not response.is_success:
        data = await _drain(response)
        raise HTTPError(status_code=response.status_code, body=data)

    content_type = response.headers.get("Content-Type", "")
    if not any(mime in content_type for mime in STREAM_CONTENT_TYPES):
        data = await _drain(response)
        raise UnexpectedContentTypeError(content_type, data)

    try:
        stream = DataAnalysisStream(
            response,
            status_code=response.status_code,
            headers=response.headers,
            buffer_size=buffer_size,
            read_timeout=read_timeout,
        )
    except BaseException:
        await response.aclose()
        raise
    logger.debug("Analysis stream opened — status=%d content_type=%s", response.status_code, content_type)
    return stream


async def cancel_analyze(
    request: CancelAnalyzeRequest | None,
    *,
    client: CatalogClient | None = None,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, Any] | None = None,
    request_id: str | None = None,
) -> CancelAnalyzeResponse:
    """Cancel an in-progress analysis by its ``request_id``.

    Only the user who started the analysis may cancel it. ``request_id``
    (the keyword) is the tracing header of *this* call, not the target.
    """
    if request is None:
        raise RequestValidationError("request payload cannot be None")
    if not request.request_id.strip():
        raise RequestValidationError("request_id cannot be empty")

    query = dict(params or {})
    query["request_id"] = request.request_id

    client = client or get_catalog_client()
    data = await client.post_json(
        CANCEL_PATH,
        headers=headers,
        params=query,
        request_id=request_id,
    )
    return CancelAnalyzeResponse.model_validate(data)


async def _drain(response: httpx.Response) -> bytes:
    try:
        return await response.aread()
    finally:
        await response.aclose()
