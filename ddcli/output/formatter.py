"""Output format selection and the shared formatter interface."""

import enum
from typing import TextIO

from ..errors import RenderFailure, UnknownFormat
from ..models import LogsAggregateResponse, LogsListResponse, SpansListResponse


class OutputFormat(str, enum.Enum):
    JSON = "json"
    TABLE = "table"
    RAW = "raw"
    PERFETTO = "perfetto"


def parse_format(value: str) -> OutputFormat:
    """Parse an ``--output`` value.

    Raises
    ------
    UnknownFormat
        If ``value`` is not json, table, raw or perfetto.
    """
    try:
        return OutputFormat(value)
    except ValueError:
        raise UnknownFormat(
            f"unknown output format {value!r} (use json, table, raw, or perfetto)"
        ) from None


class Formatter:
    """Renders result sets to text.

    Subclasses implement the ``render_*`` methods they support; the
    ``format_*`` methods write the rendered text to a stream.
    """

    name = "formatter"

    def render_logs(self, resp: LogsListResponse) -> str:
        raise NotImplementedError(f"{self.name} output does not support logs")

    def render_aggregate(self, resp: LogsAggregateResponse) -> str:
        raise NotImplementedError(f"{self.name} output does not support aggregates")

    def render_spans(self, resp: SpansListResponse) -> str:
        raise NotImplementedError(f"{self.name} output does not support spans")

    def format_logs(self, out: TextIO, resp: LogsListResponse) -> None:
        write_output(out, self.render_logs(resp))

    def format_aggregate(self, out: TextIO, resp: LogsAggregateResponse) -> None:
        write_output(out, self.render_aggregate(resp))

    def format_spans(self, out: TextIO, resp: SpansListResponse) -> None:
        write_output(out, self.render_spans(resp))


def write_output(out: TextIO, text: str) -> None:
    """Write and flush, turning I/O errors into RenderFailure."""
    try:
        out.write(text)
        out.flush()
    except OSError as e:
        raise RenderFailure(f"writing output: {e}") from e

