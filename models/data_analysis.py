"""Data-analysis request / response models.

``POST /byoa/api/v1/data_asking/analyze`` — streaming analysis request.
``POST /byoa/api/v1/data_asking/cancel`` — cancel by ``request_id``.
"""

from __future__ import annotations

from pydantic import Field

from models.base import WireModel


class FilterConditions(WireModel):
    type: str = ""  # e.g. "non_inter_data"


class DataSource(WireModel):
    type: str = ""  # e.g. "all"


class CodeGroup(WireModel):
    name: str
    values: list[str] = Field(default_factory=list)


class DataScope(WireModel):
    """Which organisational codes the analysis is restricted to."""

    type: str = ""  # e.g. "specified"
    code_type: int | None = None
    code_group: list[CodeGroup] | None = None


class DataAnalysisConfig(WireModel):
    data_category: str = ""  # e.g. "admin"
    filter_conditions: FilterConditions | None = None
    data_source: DataSource | None = None
    data_scope: DataScope | None = None


class DataAnalysisRequest(WireModel):
    """Analyze request body — the question plus optional session / config."""

    question: str
    source: str | None = None  # e.g. "rag", "nl2sql"
    session_id: str | None = None
    config: DataAnalysisConfig | None = None


class CancelAnalyzeRequest(WireModel):
    """Target of a cancel call; sent as the ``request_id`` query parameter."""

    request_id: str


class CancelAnalyzeResponse(WireModel):
    """Envelope ``data`` of a cancel call."""

    request_id: str = ""
    status: str = ""  # "cancelled" on success
    user_id: str = ""
    user_name: str = ""


class HealthStatus(WireModel):
    """Response of ``GET /healthz``; ``status`` is ``"ok"`` when healthy."""

    status: str = ""
