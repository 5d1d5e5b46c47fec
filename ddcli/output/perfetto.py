"""Timeline export in the Chrome Trace Event Format.

The output opens in https://ui.perfetto.dev, chrome://tracing or speedscope.
Each service becomes a process (labelled by a ``process_name`` metadata
event) and each span a complete (``ph: "X"``) event on that process.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..models import SpansListResponse
from .formatter import Formatter

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def unix_micros(ts: datetime) -> int:
    return (ts - EPOCH) // _MICROSECOND


def ns_to_micros(ns: int) -> int:
    """Integer nanoseconds to microseconds, truncated toward zero."""
    if ns < 0:
        return -(-ns // 1000)
    return ns // 1000


def trace_event(
    name: str,
    ph: str,
    pid: int,
    tid: int,
    cat: str = "",
    ts: int = 0,
    dur: int = 0,
    args: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build one trace event; empty ``cat``, zero ``ts``/``dur`` and empty ``args`` are left out."""
    event: Dict[str, Any] = {"name": name}
    if cat:
        event["cat"] = cat
    event["ph"] = ph
    if ts:
        event["ts"] = ts
    if dur:
        event["dur"] = dur
    event["pid"] = pid
    event["tid"] = tid
    if args:
        event["args"] = args
    return event


def build_trace_events(resp: SpansListResponse) -> List[Dict[str, Any]]:
    """Convert spans to trace events: process metadata first, then spans."""
    # Services get pids 1, 2, ... in order of first appearance
    service_pids: Dict[str, int] = {}
    for span in resp.data:
        service_pids.setdefault(span.attributes.service, len(service_pids) + 1)

    events = [
        trace_event("process_name", "M", pid=pid, tid=0, args={"name": service})
        for service, pid in service_pids.items()
    ]

    for span in resp.data:
        a = span.attributes
        pid = service_pids[a.service]
        args: Dict[str, Any] = {
            "span_id": a.span_id,
            "trace_id": a.trace_id,
            "status": a.status,
        }
        if a.parent_id:
            args["parent_id"] = a.parent_id

        events.append(trace_event(
            a.resource_name,
            "X",
            pid=pid,
            tid=pid,
            cat=a.operation_name,
            ts=unix_micros(a.start_timestamp),
            dur=ns_to_micros(a.duration),
            args=args,
        ))

    return events


class PerfettoFormatter(Formatter):
    """Spans as a JSON array of trace events. Only spans are supported."""

    name = "perfetto"

    def render_spans(self, resp: SpansListResponse) -> str:
        return json.dumps(build_trace_events(resp), indent=2, ensure_ascii=False) + "\n"
