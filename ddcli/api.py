"""Async client for the Datadog v2 logs and spans APIs.

The client only knows how to issue a single request and decode its response.
Walking pages with the resumption cursor is done by ``ddcli.pagination``.

Errors
------
- HTTP status >= 400 raises ``APIError`` with the status code and the error
  messages from the response body.
- Transport failures and undecodable bodies raise ``FetchFailure``.
Nothing is retried here.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .errors import APIError, FetchFailure
from .models import (
    AggregateLogsParams,
    LogsAggregateResponse,
    LogsListResponse,
    SearchLogsParams,
    SearchSpansParams,
    SpansListResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Page size sent when the caller asks for <= 0, and the backend ceiling
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000

LOGS_SEARCH_PATH = "/api/v2/logs/events/search"
LOGS_AGGREGATE_PATH = "/api/v2/logs/analytics/aggregate"
SPANS_SEARCH_PATH = "/api/v2/spans/events/search"

ResponseT = TypeVar("ResponseT", bound=BaseModel)


def clamp_page_size(limit: int) -> int:
    """Default non-positive page sizes to 50 and cap them at 1000."""
    if limit <= 0:
        return DEFAULT_PAGE_SIZE
    return min(limit, MAX_PAGE_SIZE)


def format_time(value: datetime) -> str:
    """Format an instant as RFC 3339 in UTC with second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc).replace(microsecond=0)
    return utc.isoformat().replace("+00:00", "Z")


def parse_api_error(status_code: int, body: bytes) -> APIError:
    """Build an APIError, using the ``errors`` list of the body when present."""
    try:
        payload = json.loads(body)
    except ValueError:
        return APIError(status_code)

    errors = payload.get("errors") if isinstance(payload, dict) else None
    if not isinstance(errors, list):
        return APIError(status_code)
    return APIError(status_code, [e if isinstance(e, str) else json.dumps(e) for e in errors])


class DatadogClient:
    """Async HTTP client for the Datadog API.

    Parameters
    ----------
    base_url : str
        API base URL, e.g. ``https://api.datadoghq.com``.
    api_key : str
        Datadog API key, sent as ``DD-API-KEY``.
    app_key : str
        Datadog application key, sent as ``DD-APPLICATION-KEY``.
    timeout : float
        Per-request timeout in seconds (default: 30.0).

    Examples
    --------
    ```python
    async with DatadogClient("https://api.datadoghq.com", api_key, app_key) as client:
        page = await client.search_logs(params)
    ```
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        app_key: str,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.app_key = app_key
        self._client = httpx.AsyncClient(timeout=timeout)
        logger.debug(f"DatadogClient initialized: {self.base_url}")

    async def __aenter__(self) -> "DatadogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "DD-API-KEY": self.api_key,
            "DD-APPLICATION-KEY": self.app_key,
        }

    async def _post(
        self,
        path: str,
        body: Dict[str, Any],
        response_model: Type[ResponseT],
        action: str,
    ) -> ResponseT:
        """POST a JSON body and decode the response into ``response_model``.

        ``action`` names the operation in error messages, e.g. "searching logs".
        """
        try:
            resp = await self._client.post(
                f"{self.base_url}{path}",
                headers=self._get_headers(),
                json=body,
            )
        except httpx.HTTPError as e:
            raise FetchFailure(f"{action}: executing request: {e}") from e

        if resp.status_code >= 400:
            raise parse_api_error(resp.status_code, resp.content)

        try:
            return response_model.model_validate_json(resp.content)
        except ValidationError as e:
            raise FetchFailure(f"{action}: decoding response: {e}") from e

    async def search_logs(self, params: SearchLogsParams) -> LogsListResponse:
        """Fetch one page of logs.

        Parameters
        ----------
        params : SearchLogsParams
            Query, window, sort, page size and cursor for this page.

        Returns
        -------
        LogsListResponse
            Records of the page and the cursor of the next one.
        """
        filter_body: Dict[str, Any] = {
            "query": params.query,
            "from": format_time(params.from_time),
            "to": format_time(params.to_time),
        }
        if params.indexes:
            filter_body["indexes"] = params.indexes

        page: Dict[str, Any] = {"limit": clamp_page_size(params.limit)}
        if params.cursor:
            page["cursor"] = params.cursor

        body = {
            "filter": filter_body,
            "sort": params.sort or "-timestamp",
            "page": page,
        }
        return await self._post(LOGS_SEARCH_PATH, body, LogsListResponse, "searching logs")

    async def aggregate_logs(self, params: AggregateLogsParams) -> LogsAggregateResponse:
        """Compute aggregates (counts, averages, ...) over matching logs."""
        body: Dict[str, Any] = {
            "compute": [c.model_dump(exclude_none=True) for c in params.compute],
            "filter": {
                "query": params.query,
                "from": format_time(params.from_time),
                "to": format_time(params.to_time),
            },
        }
        if params.group_by:
            body["group_by"] = [g.model_dump(exclude_none=True) for g in params.group_by]

        return await self._post(
            LOGS_AGGREGATE_PATH, body, LogsAggregateResponse, "aggregating logs"
        )

    async def search_spans(self, params: SearchSpansParams) -> SpansListResponse:
        """Fetch one page of spans.

        Parameters
        ----------
        params : SearchSpansParams
            Query, window, sort, page size and cursor for this page.

        Returns
        -------
        SpansListResponse
            Spans of the page and the cursor of the next one.
        """
        page: Dict[str, Any] = {"limit": clamp_page_size(params.limit)}
        if params.cursor:
            page["cursor"] = params.cursor

        body = {
            "data": {
                "type": "search_request",
                "attributes": {
                    "filter": {
                        "query": params.query,
                        "from": format_time(params.from_time),
                        "to": format_time(params.to_time),
                    },
                    "sort": params.sort or "timestamp",
                    "page": page,
                },
            }
        }
        return await self._post(SPANS_SEARCH_PATH, body, SpansListResponse, "searching spans")

