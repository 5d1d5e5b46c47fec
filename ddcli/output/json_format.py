"""Structured (indented JSON) output."""

import json

from pydantic import BaseModel

from ..models import LogsAggregateResponse, LogsListResponse, SpansListResponse
from .formatter import Formatter


def to_json(model: BaseModel, indent: int = 2) -> str:
    """Encode a model as indented JSON followed by a newline."""
    return json.dumps(model.model_dump(mode="json"), indent=indent, ensure_ascii=False) + "\n"


class JSONFormatter(Formatter):
    """Full structured encoding of the result set."""

    name = "json"

    def render_logs(self, resp: LogsListResponse) -> str:
        return to_json(resp)

    def render_aggregate(self, resp: LogsAggregateResponse) -> str:
        return to_json(resp)

    def render_spans(self, resp: SpansListResponse) -> str:
        return to_json(resp)
