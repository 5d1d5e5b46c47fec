"""Tests for the Datadog API client.

These tests mock HTTP requests at the transport level using respx.
This validates that api.py makes correct requests without hitting real servers.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from ddcli.api import DatadogClient, clamp_page_size, format_time
from ddcli.errors import APIError, FetchFailure
from ddcli.models import (
    AggregateCompute,
    AggregateGroupBy,
    AggregateGroupSort,
    AggregateLogsParams,
    SearchLogsParams,
    SearchSpansParams,
)

from conftest import BASE_URL

FROM = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
TO = datetime(2025, 1, 15, 11, 0, 0, tzinfo=timezone.utc)

LOGS_RESPONSE = {
    "data": [
        {
            "id": "log-1",
            "type": "log",
            "attributes": {
                "timestamp": "2025-01-15T10:30:00.123Z",
                "status": "error",
                "service": "payment",
                "host": "web-1",
                "message": "payment failed",
                "attributes": {"amount": 12},
                "tags": ["env:prod"],
            },
        }
    ],
    "meta": {"page": {"after": "cursor-2"}, "status": "done", "elapsed": 12},
}


@pytest_asyncio.fixture
async def client():
    c = DatadogClient(BASE_URL, "api-key", "app-key")
    yield c
    await c.close()


def _body(route) -> dict:
    return json.loads(route.calls[0].request.content)


class TestHelpers:
    def test_clamp_page_size(self):
        assert clamp_page_size(0) == 50
        assert clamp_page_size(-5) == 50
        assert clamp_page_size(10) == 10
        assert clamp_page_size(1000) == 1000
        assert clamp_page_size(5000) == 1000

    def test_format_time_is_utc_seconds(self):
        value = datetime(2025, 1, 15, 12, 30, 45, 999999, tzinfo=timezone.utc)
        assert format_time(value) == "2025-01-15T12:30:45Z"

    def test_format_time_converts_offsets(self):
        value = datetime(2025, 1, 15, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_time(value) == "2025-01-15T12:00:00Z"


class TestSearchLogs:
    @pytest.mark.asyncio
    async def test_sends_auth_headers(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, json={"data": [], "meta": {}})
        )

        await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))

        headers = route.calls[0].request.headers
        assert headers["DD-API-KEY"] == "api-key"
        assert headers["DD-APPLICATION-KEY"] == "app-key"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_request_body(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        await client.search_logs(SearchLogsParams(
            query="service:payment",
            from_time=FROM,
            to_time=TO,
            sort="timestamp",
            limit=25,
            cursor="abc",
            indexes=["main"],
        ))

        assert _body(route) == {
            "filter": {
                "query": "service:payment",
                "from": "2025-01-15T10:00:00Z",
                "to": "2025-01-15T11:00:00Z",
                "indexes": ["main"],
            },
            "sort": "timestamp",
            "page": {"limit": 25, "cursor": "abc"},
        }

    @pytest.mark.asyncio
    async def test_defaults_sort_and_limit_and_omits_empty_fields(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO, limit=0))

        body = _body(route)
        assert body["sort"] == "-timestamp"
        assert body["page"] == {"limit": 50}
        assert "indexes" not in body["filter"]

    @pytest.mark.asyncio
    async def test_clamps_limit(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO, limit=5000))

        assert _body(route)["page"]["limit"] == 1000

    @pytest.mark.asyncio
    async def test_parses_response(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, json=LOGS_RESPONSE)
        )

        resp = await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))

        assert len(resp.data) == 1
        entry = resp.data[0]
        assert entry.id == "log-1"
        assert entry.attributes.service == "payment"
        assert entry.attributes.timestamp == datetime(2025, 1, 15, 10, 30, 0, 123000, tzinfo=timezone.utc)
        assert entry.attributes.attributes == {"amount": 12}
        assert resp.meta.page.after == "cursor-2"
        assert resp.meta.elapsed == 12

    @pytest.mark.asyncio
    async def test_null_fields_fall_back_to_defaults(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, json={
                "data": [{"id": "log-1", "attributes": {"message": None, "tags": None}}],
                "meta": {"page": {"after": None}},
            })
        )

        resp = await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))

        assert resp.data[0].attributes.message == ""
        assert resp.data[0].attributes.tags == []
        assert resp.meta.page.after == ""


class TestErrors:
    @pytest.mark.asyncio
    async def test_api_error_with_messages(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(403, json={"errors": ["Forbidden"]})
        )

        with pytest.raises(APIError) as exc_info:
            await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))

        assert exc_info.value.status_code == 403
        assert exc_info.value.errors == ["Forbidden"]
        assert str(exc_info.value) == "datadog api error (403): Forbidden"

    @pytest.mark.asyncio
    async def test_api_error_without_body(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(500, text="oops")
        )

        with pytest.raises(APIError) as exc_info:
            await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))

        assert str(exc_info.value) == "datadog api error (500)"

    @pytest.mark.asyncio
    async def test_api_error_is_a_fetch_failure(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/spans/events/search").mock(
            return_value=httpx.Response(429, json={"errors": ["Too many requests"]})
        )

        with pytest.raises(FetchFailure):
            await client.search_spans(SearchSpansParams(from_time=FROM, to_time=TO))

    @pytest.mark.asyncio
    async def test_transport_error_raises_fetch_failure(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            side_effect=httpx.ConnectError("connection refused")
        )

        with pytest.raises(FetchFailure, match="searching logs: executing request"):
            await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))

    @pytest.mark.asyncio
    async def test_undecodable_body_raises_fetch_failure(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/logs/events/search").mock(
            return_value=httpx.Response(200, text="<html>not json</html>")
        )

        with pytest.raises(FetchFailure, match="decoding response"):
            await client.search_logs(SearchLogsParams(from_time=FROM, to_time=TO))


class TestSearchSpans:
    @pytest.mark.asyncio
    async def test_request_body(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/spans/events/search").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        await client.search_spans(SearchSpansParams(
            query="trace_id:abc123",
            from_time=FROM,
            to_time=TO,
            limit=1000,
            cursor="next",
        ))

        assert _body(route) == {
            "data": {
                "type": "search_request",
                "attributes": {
                    "filter": {
                        "query": "trace_id:abc123",
                        "from": "2025-01-15T10:00:00Z",
                        "to": "2025-01-15T11:00:00Z",
                    },
                    "sort": "timestamp",
                    "page": {"limit": 1000, "cursor": "next"},
                },
            }
        }

    @pytest.mark.asyncio
    async def test_parses_spans_and_duration(self, respx_mock, client):
        respx_mock.post(f"{BASE_URL}/api/v2/spans/events/search").mock(
            return_value=httpx.Response(200, json={
                "data": [{
                    "id": "span-1",
                    "type": "spans",
                    "attributes": {
                        "start_timestamp": "2025-01-15T10:30:00Z",
                        "trace_id": "abc123",
                        "span_id": "span-1",
                        "parent_id": "span-0",
                        "service": "web-store",
                        "resource_name": "GET /api/products",
                        "operation_name": "http.request",
                        "custom": {"duration": 5000000.0},
                    },
                }],
                "meta": {"page": {"after": ""}},
            })
        )

        resp = await client.search_spans(SearchSpansParams(from_time=FROM, to_time=TO))

        span = resp.data[0].attributes
        assert span.parent_id == "span-0"
        assert span.duration == 5_000_000
        assert resp.meta.page.after == ""


class TestAggregateLogs:
    @pytest.mark.asyncio
    async def test_request_body_with_group_by(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/logs/analytics/aggregate").mock(
            return_value=httpx.Response(200, json={"data": {"buckets": []}})
        )

        await client.aggregate_logs(AggregateLogsParams(
            query="status:error",
            from_time=FROM,
            to_time=TO,
            compute=[AggregateCompute(aggregation="count")],
            group_by=[AggregateGroupBy(
                facet="service",
                limit=10,
                sort=AggregateGroupSort(aggregation="count", order="desc"),
            )],
        ))

        assert _body(route) == {
            "compute": [{"aggregation": "count", "type": "total"}],
            "filter": {
                "query": "status:error",
                "from": "2025-01-15T10:00:00Z",
                "to": "2025-01-15T11:00:00Z",
            },
            "group_by": [{
                "facet": "service",
                "limit": 10,
                "sort": {"aggregation": "count", "order": "desc"},
            }],
        }

    @pytest.mark.asyncio
    async def test_omits_empty_group_by_and_parses_buckets(self, respx_mock, client):
        route = respx_mock.post(f"{BASE_URL}/api/v2/logs/analytics/aggregate").mock(
            return_value=httpx.Response(200, json={
                "data": {"buckets": [{"by": {"service": "payment"}, "computes": {"c0": 142}}]},
                "meta": {"status": "done"},
            })
        )

        resp = await client.aggregate_logs(AggregateLogsParams(
            from_time=FROM,
            to_time=TO,
            compute=[AggregateCompute(aggregation="avg", metric="@duration")],
        ))

        body = _body(route)
        assert "group_by" not in body
        assert body["compute"] == [{"aggregation": "avg", "metric": "@duration", "type": "total"}]
        assert resp.data.buckets[0].by == {"service": "payment"}
        assert resp.data.buckets[0].computes == {"c0": 142}
