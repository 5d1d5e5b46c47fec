"""Raw output: one line per record."""

import json

from pydantic import BaseModel

from ..models import LogsAggregateResponse, LogsListResponse, SpansListResponse
from .formatter import Formatter


def to_compact_json(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json"), separators=(",", ":"), ensure_ascii=False)


class RawFormatter(Formatter):
    """Log messages verbatim, or one compact JSON document per span / bucket."""

    name = "raw"

    def render_logs(self, resp: LogsListResponse) -> str:
        return "".join(f"{entry.attributes.message}\n" for entry in resp.data)

    def render_aggregate(self, resp: LogsAggregateResponse) -> str:
        return "".join(f"{to_compact_json(bucket)}\n" for bucket in resp.data.buckets)

    def render_spans(self, resp: SpansListResponse) -> str:
        return "".join(f"{to_compact_json(entry)}\n" for entry in resp.data)
