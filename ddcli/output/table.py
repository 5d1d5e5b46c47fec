"""Human-readable tables, with spans laid out as an indented tree."""

import json
from datetime import datetime
from typing import Any, List, Sequence

from ..models import LogsAggregateResponse, LogsListResponse, SpansListResponse
from ..spantree import build_span_tree
from .formatter import Formatter

# Spaces between aligned columns
COLUMN_PADDING = 2
MESSAGE_WIDTH = 100
RESOURCE_WIDTH = 60

LOG_HEADERS = ["TIMESTAMP", "STATUS", "SERVICE", "HOST", "MESSAGE"]
SPAN_HEADERS = ["SERVICE", "RESOURCE", "TYPE", "DURATION", "SPAN_ID"]


def truncate(s: str, max_len: int) -> str:
    """Cut ``s`` to ``max_len`` characters, ending with ``...`` when cut."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def format_duration(ns: int) -> str:
    """Format a duration in nanoseconds, e.g. ``500ns``, ``5.0ms``, ``1.1m``."""
    if ns < 1000:
        return f"{ns}ns"
    us = ns / 1000
    if us < 1000:
        return f"{us:.0f}us"
    ms = us / 1000
    if ms < 1000:
        return f"{ms:.1f}ms"
    s = ms / 1000
    if s < 60:
        return f"{s:.2f}s"
    return f"{s / 60:.1f}m"


def format_timestamp(ts: datetime) -> str:
    """``YYYY-MM-DD HH:MM:SS`` in the timestamp's own zone."""
    return ts.replace(tzinfo=None).isoformat(sep=" ", timespec="seconds")


def format_value(value: Any) -> str:
    """Render a computed aggregate value; whole floats print without ``.0``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def align_columns(rows: Sequence[Sequence[str]]) -> str:
    """Left-align cells into columns.

    Every column but the last is padded to its widest cell plus
    ``COLUMN_PADDING`` spaces; the last column is written as-is.
    """
    if not rows:
        return ""

    ncols = max(len(row) for row in rows)
    widths = [0] * ncols
    for row in rows:
        for i, cell in enumerate(row[:-1]):
            widths[i] = max(widths[i], len(cell))

    lines = []
    for row in rows:
        padded = [cell.ljust(widths[i] + COLUMN_PADDING) for i, cell in enumerate(row[:-1])]
        lines.append("".join(padded) + (row[-1] if row else ""))
    return "\n".join(lines) + "\n"


def _dashes(headers: List[str]) -> List[str]:
    return ["-" * len(h) for h in headers]


class TableFormatter(Formatter):
    """Fixed-column tables with a trailing result count."""

    name = "table"

    def render_logs(self, resp: LogsListResponse) -> str:
        rows = [LOG_HEADERS, _dashes(LOG_HEADERS)]
        for entry in resp.data:
            attrs = entry.attributes
            rows.append([
                format_timestamp(attrs.timestamp),
                attrs.status,
                attrs.service,
                attrs.host,
                truncate(attrs.message, MESSAGE_WIDTH).replace("\n", " "),
            ])

        return align_columns(rows) + f"\n({len(resp.data)} results)\n"

    def render_aggregate(self, resp: LogsAggregateResponse) -> str:
        buckets = resp.data.buckets
        if not buckets:
            return "(no results)\n"

        # Group-by keys then compute keys, in the order of the first bucket
        group_keys = list(buckets[0].by)
        compute_keys = list(buckets[0].computes)
        headers = group_keys + compute_keys

        rows = [headers, _dashes(headers)]
        for bucket in buckets:
            rows.append(
                [format_value(bucket.by.get(k)) for k in group_keys]
                + [format_value(bucket.computes.get(k)) for k in compute_keys]
            )

        return align_columns(rows)

    def render_spans(self, resp: SpansListResponse) -> str:
        if not resp.data:
            return "(no spans found)\n"

        tree = build_span_tree(resp.data)
        rows = [SPAN_HEADERS, _dashes(SPAN_HEADERS)]
        for span, depth in tree.walk():
            attrs = span.attributes
            rows.append([
                "  " * depth + attrs.service,
                truncate(attrs.resource_name, RESOURCE_WIDTH),
                attrs.operation_name,
                format_duration(attrs.duration),
                attrs.span_id,
            ])

        return align_columns(rows) + f"\n({len(resp.data)} spans)\n"
