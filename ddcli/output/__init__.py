"""Renderers for log, aggregate and span result sets.

The set of formats is closed: ``parse_format`` resolves the user's choice once
at the command boundary and the factories below map it to a formatter.
"""

from .formatter import Formatter, OutputFormat, parse_format, write_output
from .json_format import JSONFormatter
from .perfetto import PerfettoFormatter
from .raw import RawFormatter
from .table import TableFormatter, format_duration


def logs_formatter(fmt: OutputFormat) -> Formatter:
    """Formatter for log search results; perfetto falls back to JSON."""
    if fmt is OutputFormat.TABLE:
        return TableFormatter()
    if fmt is OutputFormat.RAW:
        return RawFormatter()
    return JSONFormatter()


def aggregate_formatter(fmt: OutputFormat) -> Formatter:
    """Formatter for aggregation results; perfetto falls back to JSON."""
    return logs_formatter(fmt)


def spans_formatter(fmt: OutputFormat) -> Formatter:
    """Formatter for span results."""
    if fmt is OutputFormat.PERFETTO:
        return PerfettoFormatter()
    return logs_formatter(fmt)


__all__ = [
    "Formatter",
    "OutputFormat",
    "parse_format",
    "write_output",
    "JSONFormatter",
    "PerfettoFormatter",
    "RawFormatter",
    "TableFormatter",
    "format_duration",
    "logs_formatter",
    "aggregate_formatter",
    "spans_formatter",
]
