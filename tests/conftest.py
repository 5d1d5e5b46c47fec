"""Shared pytest fixtures for ddcli tests."""

from datetime import datetime, timezone
from typing import List, Optional

import pytest
import respx

from ddcli.models import (
    ListMeta,
    LogAttributes,
    LogEntry,
    LogsListResponse,
    PageInfo,
    SpanAttributes,
    SpanEntry,
    SpansListResponse,
)

BASE_URL = "https://api.datadoghq.com"


@pytest.fixture
def respx_mock():
    """Fixture that provides a respx mock router.

    Configuration:
        - assert_all_mocked=True: Any request without a route fails the test,
          nothing reaches the real Datadog API.
        - assert_all_called=True: Ensures every mock defined is actually used.
    """
    with respx.mock(assert_all_mocked=True, assert_all_called=True) as mock:
        yield mock


@pytest.fixture
def now():
    """Fixed reference instant."""
    return datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_log():
    """Factory for log entries."""

    def _make(
        log_id: str,
        timestamp: Optional[datetime] = None,
        message: str = "hello",
        status: str = "info",
        service: str = "web-store",
        host: str = "web-1",
    ) -> LogEntry:
        return LogEntry(
            id=log_id,
            type="log",
            attributes=LogAttributes(
                timestamp=timestamp or datetime(2025, 1, 15, 10, 30, 0, tzinfo=timezone.utc),
                status=status,
                service=service,
                host=host,
                message=message,
                tags=["env:prod"],
            ),
        )

    return _make


@pytest.fixture
def make_span():
    """Factory for spans; ``start_us`` is microseconds after 2025-01-15 10:30:00Z."""

    def _make(
        span_id: str,
        parent_id: str = "",
        start_us: int = 0,
        service: str = "web-store",
        resource: str = "GET /api/products",
        operation: str = "http.request",
        duration_ns: Optional[float] = 5_000_000,
        trace_id: str = "abc123",
        status: str = "ok",
    ) -> SpanEntry:
        custom = {} if duration_ns is None else {"duration": duration_ns}
        start = datetime(2025, 1, 15, 10, 30, 0, start_us, tzinfo=timezone.utc)
        return SpanEntry(
            id=span_id,
            type="spans",
            attributes=SpanAttributes(
                start_timestamp=start,
                end_timestamp=start,
                trace_id=trace_id,
                span_id=span_id,
                parent_id=parent_id,
                service=service,
                resource_name=resource,
                operation_name=operation,
                status=status,
                custom=custom,
            ),
        )

    return _make


@pytest.fixture
def logs_page():
    """Factory for one page of log results."""

    def _make(entries: List[LogEntry], after: str = "") -> LogsListResponse:
        return LogsListResponse(data=entries, meta=ListMeta(page=PageInfo(after=after), status="done"))

    return _make


@pytest.fixture
def spans_page():
    """Factory for one page of span results."""

    def _make(entries: List[SpanEntry], after: str = "") -> SpansListResponse:
        return SpansListResponse(data=entries, meta=ListMeta(page=PageInfo(after=after), status="done"))

    return _make
