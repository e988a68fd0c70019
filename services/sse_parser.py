"""Server-Sent Events parser for the data-analysis stream.

Turns lines from a :class:`~services.stream_io.LineReader` into
:class:`~models.stream_event.StreamEvent` objects::

    event: classification          <- optional, overrides JSON "type"
    data: {"type": "...", ...}     <- one or more, joined with "\\n"
                                   <- blank line dispatches the event

Only ``data: `` and ``event: `` fields are interpreted; ``id:``, ``retry:``
and comments are ignored. A payload that is not valid JSON is delivered
as raw bytes instead of raising.
"""

from __future__ import annotations

import json
import logging
from enum import Enum

from models.stream_event import StreamEvent
from services.stream_io import LineReader

logger = logging.getLogger(__name__)

DATA_PREFIX = b"data: "
EVENT_PREFIX = b"event: "

# JSON keys copied onto StreamEvent when they hold strings
_STRING_FIELDS = ("type", "source", "step_type", "step_name")


class ParserState(str, Enum):
    ACCUMULATING = "accumulating"
    EVENT_READY = "event_ready"
    EXHAUSTED = "exhausted"


def build_event(data_lines: list[bytes], event_type: str | None = None) -> StreamEvent:
    """Assemble one event from its ``data:`` lines and ``event:`` override.

    The explicit ``event_type`` wins over a ``type`` key inside the JSON.
    """
    raw = b"\n".join(data_lines)
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError):
        # RecursionError: nesting deeper than the decoder supports
        logger.debug("Event payload is not JSON, delivering raw bytes (%d bytes)", len(raw))
        return StreamEvent(type=event_type or "", raw_data=raw)

    fields: dict[str, str] = {}
    data = None
    if isinstance(payload, dict):
        for key in _STRING_FIELDS:
            value = payload.get(key)
            if isinstance(value, str):
                fields[key] = value
        data = payload.get("data")
    if event_type:
        fields["type"] = event_type

    return StreamEvent(**fields, data=data, payload=payload, decoded=True, raw_data=raw)


class SSEEventParser:
    """Read one event per call from a line reader.

    Pending ``data:`` lines live only for the duration of one call, so an
    error raised by the line reader (e.g. an inactivity timeout) discards
    the partial event. Events are returned in wire order.
    """

    def __init__(self, lines: LineReader) -> None:
        self._lines = lines
        self.state = ParserState.ACCUMULATING

    async def next_event(self) -> StreamEvent | None:
        """Return the next event, or ``None`` once the stream is exhausted.

        A trailing event that is not followed by a blank line before the
        connection closes is still returned, once.
        """
        if self.state is ParserState.EXHAUSTED:
            return None
        self.state = ParserState.ACCUMULATING

        data_lines: list[bytes] = []
        event_type: str | None = None

        while True:
            line = await self._lines.read_line()

            if line is None:
                if data_lines:
                    self.state = ParserState.EVENT_READY
                    return build_event(data_lines, event_type)
                self.state = ParserState.EXHAUSTED
                return None

            if not line:
                if data_lines:
                    self.state = ParserState.EVENT_READY
                    return build_event(data_lines, event_type)
                continue

            if line.startswith(DATA_PREFIX):
                data_lines.append(line[len(DATA_PREFIX):])
            elif line.startswith(EVENT_PREFIX):
                event_type = line[len(EVENT_PREFIX):].decode("utf-8", errors="replace")

    async def aclose(self) -> None:
        await self._lines.aclose()
