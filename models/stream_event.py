"""Decoded events of the data-analysis SSE stream.

The server emits loosely-typed JSON events. By convention:

- ``init``:            first event (``step_type="init"``), ``data`` carries
                       ``request_id`` and ``session_title``
- ``classification``:  question classification result
- ``decomposition``:   attribution question decomposition
- ``step_start`` / ``step_complete``: attribution steps
- ``chunks`` / ``answer_chunk``: RAG output (``source="rag"``)
- ``complete``:        analysis finished — stop reading
- ``error``:           error information

None of these shapes are enforced; a payload that is not valid JSON is
delivered as raw bytes only.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class StreamEventType(str, Enum):
    """Event types the analysis service is known to emit."""

    INIT = "init"
    CLASSIFICATION = "classification"
    DECOMPOSITION = "decomposition"
    STEP_START = "step_start"
    STEP_COMPLETE = "step_complete"
    CHUNKS = "chunks"
    ANSWER_CHUNK = "answer_chunk"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({StreamEventType.COMPLETE.value, StreamEventType.ERROR.value})


class StreamEvent(BaseModel):
    """One event read from an analysis stream.

    ``payload`` is the decoded JSON document when ``decoded`` is set;
    ``raw_data`` always holds the exact bytes of the ``data:`` field(s),
    newline-joined.
    """

    model_config = ConfigDict(frozen=True)

    type: str = ""
    source: str = ""
    step_type: str = ""
    step_name: str = ""
    data: Any = None
    payload: Any = None
    decoded: bool = False  # False: raw_data only, payload is None
    raw_data: bytes = b""

    @property
    def text(self) -> str:
        return self.raw_data.decode("utf-8", errors="replace")

    @property
    def is_terminal(self) -> bool:
        """True for ``complete`` / ``error`` — the caller should stop reading."""
        return self.type in TERMINAL_EVENT_TYPES

    @property
    def request_id(self) -> str:
        """Server-assigned request id, carried by the ``init`` event."""
        return self._lookup("request_id")

    @property
    def session_title(self) -> str:
        return self._lookup("session_title")

    def _lookup(self, key: str) -> str:
        if isinstance(self.data, dict) and isinstance(self.data.get(key), str):
            return self.data[key]
        if isinstance(self.payload, dict) and isinstance(self.payload.get(key), str):
            return self.payload[key]
        return ""
