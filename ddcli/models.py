"""Data models for the Datadog logs and spans APIs.

Response models mirror the JSON payloads of the v2 search and aggregate
endpoints. Request parameter models are the in-memory contract between the
commands, the paginated fetcher and the HTTP client.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Timestamp used when the backend omits one, serialised as 0001-01-01T00:00:00Z
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _ensure_utc(v: datetime) -> datetime:
    """Attach UTC to naive datetimes, the backend always means UTC."""
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class WireModel(BaseModel):
    """Base for backend payloads.

    Datadog sends ``null`` for absent strings, maps and lists. Those keys are
    dropped before validation so the field defaults apply instead.
    """

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class PageInfo(WireModel):
    """Pagination block; an empty ``after`` cursor means no more pages."""

    after: str = ""


class ListMeta(WireModel):
    page: PageInfo = Field(default_factory=PageInfo)
    status: str = ""
    elapsed: int = 0


class LogAttributes(WireModel):
    timestamp: datetime = ZERO_TIME
    status: str = ""
    service: str = ""
    host: str = ""
    message: str = ""
    attributes: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return _ensure_utc(v)


class LogEntry(WireModel):
    """A single log event."""

    id: str = ""
    type: str = ""
    attributes: LogAttributes = Field(default_factory=LogAttributes)


class LogsListResponse(WireModel):
    """One page of log search results, or an assembled result set."""

    data: List[LogEntry] = Field(default_factory=list)
    meta: ListMeta = Field(default_factory=ListMeta)


class SpanAttributes(WireModel):
    start_timestamp: datetime = ZERO_TIME
    end_timestamp: datetime = ZERO_TIME
    trace_id: str = ""
    span_id: str = ""
    parent_id: str = ""
    service: str = ""
    resource_name: str = ""
    operation_name: str = ""
    type: str = ""
    status: str = ""
    custom: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)

    @field_validator("start_timestamp", "end_timestamp")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return _ensure_utc(v)

    @property
    def duration(self) -> int:
        """Span duration in nanoseconds, taken from ``custom["duration"]``.

        Returns 0 when the field is missing or not numeric.
        """
        value = self.custom.get("duration")
        # bool is an int subclass but never a duration
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        try:
            return int(value)
        except (ValueError, OverflowError):
            # nan / inf
            return 0


class SpanEntry(WireModel):
    """A single APM span."""

    id: str = ""
    type: str = ""
    attributes: SpanAttributes = Field(default_factory=SpanAttributes)


class SpansListResponse(WireModel):
    """One page of span search results, or an assembled result set."""

    data: List[SpanEntry] = Field(default_factory=list)
    meta: ListMeta = Field(default_factory=ListMeta)


class AggregateBucket(WireModel):
    """Grouping key (facet -> value) with its computed values."""

    by: Dict[str, Any] = Field(default_factory=dict)
    computes: Dict[str, Any] = Field(default_factory=dict)


class LogsAggregateData(WireModel):
    buckets: List[AggregateBucket] = Field(default_factory=list)


class AggregateMeta(WireModel):
    status: str = ""
    elapsed: int = 0


class LogsAggregateResponse(WireModel):
    data: LogsAggregateData = Field(default_factory=LogsAggregateData)
    meta: AggregateMeta = Field(default_factory=AggregateMeta)


# =============================================================================
# REQUEST PARAMETERS
# =============================================================================

class SearchLogsParams(BaseModel):
    """Parameters for one log search request.

    ``sort`` is ``-timestamp`` (newest first, the default when empty) or
    ``timestamp`` (oldest first). ``limit`` is the requested page size and
    ``cursor`` the resumption cursor from the previous page.
    """

    query: str = "*"
    from_time: datetime
    to_time: datetime
    sort: str = ""
    limit: int = 0
    cursor: str = ""
    indexes: List[str] = Field(default_factory=list)


class SearchSpansParams(BaseModel):
    """Parameters for one span search request.

    ``sort`` defaults to ``timestamp`` (oldest first) when empty.
    """

    query: str = "*"
    from_time: datetime
    to_time: datetime
    sort: str = ""
    limit: int = 0
    cursor: str = ""


class AggregateCompute(BaseModel):
    aggregation: str  # count, avg, sum, min, max, pct
    metric: Optional[str] = None  # e.g. "@duration"
    type: str = "total"


class AggregateGroupSort(BaseModel):
    aggregation: str
    order: str = "desc"


class AggregateGroupBy(BaseModel):
    facet: str
    limit: Optional[int] = None
    sort: Optional[AggregateGroupSort] = None


class AggregateLogsParams(BaseModel):
    """Parameters for a log aggregation request."""

    query: str = "*"
    from_time: datetime
    to_time: datetime
    compute: List[AggregateCompute] = Field(default_factory=list)
    group_by: List[AggregateGroupBy] = Field(default_factory=list)
