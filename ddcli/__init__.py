"""ddcli - Datadog logs and traces from the command line"""

__version__ = "0.1.0"

from .api import DatadogClient
from .errors import (
    APIError,
    ConfigError,
    DDCliError,
    FetchFailure,
    InvalidDuration,
    RenderFailure,
    UnparseableTime,
)
from .pagination import StopPolicy, fetch_all
from .spantree import SpanTree, build_span_tree
from .tail import TailPoller
from .timeutil import parse_relative_or_absolute

__all__ = [
    "DatadogClient",
    "APIError",
    "ConfigError",
    "DDCliError",
    "FetchFailure",
    "InvalidDuration",
    "RenderFailure",
    "UnparseableTime",
    "StopPolicy",
    "fetch_all",
    "SpanTree",
    "build_span_tree",
    "TailPoller",
    "parse_relative_or_absolute",
]
