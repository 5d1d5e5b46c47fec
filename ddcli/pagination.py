"""Cursor-driven pagination over the search endpoints.

Pages are requested strictly one after another: each request carries the
cursor returned by the previous response. Any failure aborts the whole fetch
and propagates unchanged, no partial result is returned.
"""

import enum
import logging
from typing import Awaitable, Callable, List, TypeVar

from .api import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, clamp_page_size
from .models import (
    LogEntry,
    LogsListResponse,
    SearchLogsParams,
    SearchSpansParams,
    SpanEntry,
    SpansListResponse,
)

logger = logging.getLogger(__name__)


class StopPolicy(enum.Enum):
    """When to stop requesting pages."""

    # Stop once the target record count is reached
    COUNT_BOUNDED = "count_bounded"
    # Keep going until the backend has no more pages
    EXHAUSTIVE = "exhaustive"


ParamsT = TypeVar("ParamsT", SearchLogsParams, SearchSpansParams)
PageT = TypeVar("PageT", LogsListResponse, SpansListResponse)


async def fetch_all(
    search: Callable[[ParamsT], Awaitable[PageT]],
    params: ParamsT,
    policy: StopPolicy,
    target: int = 0,
) -> list:
    """Call ``search`` page after page and concatenate the records.

    Parameters
    ----------
    search : Callable
        Async record-search capability, invoked once per page, e.g.
        ``DatadogClient.search_logs``.
    params : SearchLogsParams | SearchSpansParams
        Query parameters. ``limit`` is the page size for the exhaustive
        policy; ``limit`` and ``cursor`` are replaced on each page request.
    policy : StopPolicy
        ``COUNT_BOUNDED`` stops once ``target`` records were received, the
        cursor is empty or a page is empty. ``EXHAUSTIVE`` ignores ``target``
        and stops only on an empty cursor or an empty page.
    target : int
        Record count wanted by ``COUNT_BOUNDED``; <= 0 means 50.

    Returns
    -------
    list
        Records of every page, in arrival order.
    """
    records: list = []
    remaining = target if target > 0 else DEFAULT_PAGE_SIZE
    cursor = params.cursor
    page_number = 0

    while True:
        if policy is StopPolicy.COUNT_BOUNDED:
            page_size = min(remaining, MAX_PAGE_SIZE)
        else:
            page_size = clamp_page_size(params.limit)

        page_params = params.model_copy(update={"limit": page_size, "cursor": cursor})
        page_number += 1
        logger.debug(f"Requesting page {page_number} (size={page_size}, cursor={cursor!r})")

        resp = await search(page_params)
        records.extend(resp.data)
        remaining -= len(resp.data)
        cursor = resp.meta.page.after

        if not cursor or not resp.data:
            break
        if policy is StopPolicy.COUNT_BOUNDED and remaining <= 0:
            break

    logger.debug(f"Fetched {len(records)} records in {page_number} pages")
    return records


async def fetch_logs(
    search: Callable[[SearchLogsParams], Awaitable[LogsListResponse]],
    params: SearchLogsParams,
    limit: int,
) -> List[LogEntry]:
    """Fetch up to ``limit`` logs (count-bounded)."""
    return await fetch_all(search, params, StopPolicy.COUNT_BOUNDED, target=limit)


async def fetch_spans(
    search: Callable[[SearchSpansParams], Awaitable[SpansListResponse]],
    params: SearchSpansParams,
) -> List[SpanEntry]:
    """Fetch every matching span (exhaustive).

    A trace is only useful when complete, so no count limit applies.
    """
    return await fetch_all(search, params, StopPolicy.EXHAUSTIVE)
