"""
Entry point for the ddcli command.

Commands:
- logs search     search logs with Datadog query syntax
- logs aggregate  compute counts / averages / ... over logs
- logs tail       stream new logs as they arrive
- traces get      fetch every span of one trace
- configure       save API credentials to ~/.ddcli.json

Log query syntax, common patterns:
  service:my-service             filter by service
  status:error                   filter by status (error, warn, info, debug)
  @duration:>5s                  filter by custom attribute
  service:web AND status:error   boolean operators (AND, OR, NOT)
"""

import argparse
import asyncio
import logging
import math
import os
import signal
import sys
from contextlib import suppress
from datetime import datetime
from typing import List, Optional, TextIO, Tuple

from . import __version__
from .api import DatadogClient
from .config import Config, load_config, save_config
from .errors import ConfigError, DDCliError, InvalidCompute, InvalidDuration, InvalidTimeBound
from .models import (
    AggregateCompute,
    AggregateGroupBy,
    AggregateGroupSort,
    AggregateLogsParams,
    LogsListResponse,
    SearchLogsParams,
    SearchSpansParams,
    SpansListResponse,
)
from .output import aggregate_formatter, logs_formatter, parse_format, spans_formatter
from .pagination import fetch_logs, fetch_spans
from .tail import TailPoller, stderr_notice, utc_now
from .timeutil import parse_interval, parse_relative_or_absolute

logger = logging.getLogger(__name__)

# Group-by buckets returned by `logs aggregate`
GROUP_BY_LIMIT = 10
# Page size for `traces get`, the backend maximum
TRACE_PAGE_SIZE = 1000

METRIC_AGGREGATIONS = ("avg", "sum", "min", "max", "pct")


# =============================================================================
# HELPERS
# =============================================================================

def build_query(
    query: Optional[str] = None,
    service: Optional[str] = None,
    env: Optional[str] = None,
    host: Optional[str] = None,
    status: Optional[str] = None,
) -> str:
    """Combine the convenience filter flags with the positional query.

    Flags come first, in the order service, env, host, status. An empty
    result matches everything (``*``).
    """
    parts = []
    if service:
        parts.append(f"service:{service}")
    if env:
        parts.append(f"env:{env}")
    if host:
        parts.append(f"host:{host}")
    if status:
        parts.append(f"status:{status}")
    if query:
        parts.append(query)

    if not parts:
        return "*"
    return " ".join(parts)


def parse_compute(value: str) -> AggregateCompute:
    """Parse ``count`` or ``<avg|sum|min|max|pct>:<metric>``.

    Raises
    ------
    InvalidCompute
        If the aggregation is unknown or its metric is missing.
    """
    agg, _, metric = value.partition(":")

    if agg == "count":
        return AggregateCompute(aggregation="count", type="total")
    if agg in METRIC_AGGREGATIONS:
        if not metric:
            raise InvalidCompute(
                f"aggregation {agg!r} requires a metric (e.g. {agg}:@duration)"
            )
        return AggregateCompute(aggregation=agg, metric=metric, type="total")

    raise InvalidCompute(
        f"unknown aggregation {agg!r} (use count, avg, sum, min, max, pct)"
    )


def resolve_window(from_value: str, to_value: str, now: datetime) -> Tuple[datetime, datetime]:
    """Resolve ``--from`` / ``--to`` against ``now``."""
    bounds = []
    for flag, value in (("--from", from_value), ("--to", to_value)):
        try:
            bounds.append(parse_relative_or_absolute(value, now))
        except ValueError as e:
            raise InvalidTimeBound(flag, e) from e
    return bounds[0], bounds[1]


def _query_from_args(args: argparse.Namespace) -> str:
    return build_query(args.query, args.service, args.env, args.host, args.status)


# =============================================================================
# COMMANDS
# =============================================================================

async def cmd_logs_search(args: argparse.Namespace, client, out: TextIO, now: datetime) -> None:
    """Search logs, following cursors until ``--limit`` logs are collected."""
    fmt = parse_format(args.output)
    from_time, to_time = resolve_window(args.from_time, args.to_time, now)

    params = SearchLogsParams(
        query=_query_from_args(args),
        from_time=from_time,
        to_time=to_time,
        sort=args.sort,
        limit=args.limit,
        indexes=args.indexes or [],
    )
    entries = await fetch_logs(client.search_logs, params, args.limit)
    logs_formatter(fmt).format_logs(out, LogsListResponse(data=entries))


async def cmd_logs_aggregate(args: argparse.Namespace, client, out: TextIO, now: datetime) -> None:
    """Aggregate logs with one compute, optionally grouped by a facet."""
    fmt = parse_format(args.output)
    from_time, to_time = resolve_window(args.from_time, args.to_time, now)
    compute = parse_compute(args.compute)

    params = AggregateLogsParams(
        query=_query_from_args(args),
        from_time=from_time,
        to_time=to_time,
        compute=[compute],
    )
    if args.group_by:
        params.group_by = [
            AggregateGroupBy(
                facet=args.group_by,
                limit=GROUP_BY_LIMIT,
                sort=AggregateGroupSort(aggregation=compute.aggregation, order="desc"),
            )
        ]

    resp = await client.aggregate_logs(params)
    aggregate_formatter(fmt).format_aggregate(out, resp)


async def cmd_logs_tail(
    args: argparse.Namespace,
    client,
    out: TextIO,
    now: datetime,
    stop: Optional[asyncio.Event] = None,
    notice=stderr_notice,
) -> None:
    """Poll for new logs until interrupted (SIGINT / SIGTERM or ``stop``)."""
    fmt = parse_format(args.output)
    query = _query_from_args(args)

    poller = TailPoller(
        client.search_logs,
        query,
        logs_formatter(fmt),
        out,
        interval=args.interval,
        clock=utc_now,
        notice=notice,
    )
    poller.start(now)

    if stop is None:
        stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal() -> None:
        logger.info("Received shutdown signal, stopping...")
        stop.set()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(sig, _handle_signal)
            installed.append(sig)

    notice(f'Tailing logs matching "{query}" (Ctrl+C to stop)...')
    try:
        await poller.run(stop)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def cmd_traces_get(args: argparse.Namespace, client, out: TextIO, now: datetime) -> None:
    """Fetch every span of a trace; all pages are read."""
    fmt = parse_format(args.output)
    from_time, to_time = resolve_window(args.from_time, args.to_time, now)

    params = SearchSpansParams(
        query=f"trace_id:{args.trace_id}",
        from_time=from_time,
        to_time=to_time,
        sort="timestamp",
        limit=TRACE_PAGE_SIZE,
    )
    spans = await fetch_spans(client.search_spans, params)
    spans_formatter(fmt).format_spans(out, SpansListResponse(data=spans))


def cmd_configure(args: argparse.Namespace, out: TextIO, path=None) -> None:
    """Save credentials to the config file."""
    if not args.api_key or not args.app_key:
        raise ConfigError("both --api-key and --app-key are required")

    save_config(Config(api_key=args.api_key, app_key=args.app_key, site=args.site), path)
    print("Configuration saved successfully.", file=out)


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def _comma_list(value: str) -> List[str]:
    return [v for v in value.split(",") if v]


def _interval(value: str) -> float:
    """Poll interval: seconds (``2``, ``0.5``) or a duration (``5s``, ``500ms``, ``1m30s``)."""
    try:
        seconds = parse_interval(value)
    except InvalidDuration as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    if not math.isfinite(seconds) or seconds <= 0:
        raise argparse.ArgumentTypeError(f"interval must be positive, got {value!r}")
    return seconds


def _add_filter_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("query", nargs="?", default="", help="Datadog log query")
    parser.add_argument("-s", "--service", default="", help="Filter by service name")
    parser.add_argument("-e", "--env", default="", help="Filter by environment (e.g. prod, staging)")
    parser.add_argument("--host", default="", help="Filter by host")
    parser.add_argument("--status", default="", help="Filter by log status (error, warn, info, debug)")


def _add_window_flags(parser: argparse.ArgumentParser, default_from: str) -> None:
    parser.add_argument(
        "--from",
        dest="from_time",
        default=default_from,
        help="Start time (relative: 15m, 1h, 24h, 7d or ISO 8601 timestamp) (default: %(default)s)",
    )
    parser.add_argument(
        "--to",
        dest="to_time",
        default="now",
        help="End time (relative or ISO 8601 timestamp) (default: %(default)s)",
    )


def _add_output_flag(parser: argparse.ArgumentParser, default: str, formats: str) -> None:
    parser.add_argument(
        "-o",
        "--output",
        default=default,
        help=f"Output format: {formats} (default: %(default)s)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddcli",
        description="Datadog CLI for AI agents and humans.",
        epilog=(
            "Configure authentication with `ddcli configure --api-key <key> --app-key <key>` "
            "or the DD_API_KEY, DD_APP_KEY and DD_SITE environment variables."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=os.getenv("DDCLI_LOG_LEVEL", "WARNING"),
        help="Logging level, written to stderr (default: %(default)s)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    # logs
    logs = commands.add_parser("logs", help="Search, aggregate, and tail Datadog logs")
    logs_commands = logs.add_subparsers(dest="logs_command", required=True)

    search = logs_commands.add_parser("search", help="Search logs with Datadog query syntax")
    _add_filter_flags(search)
    _add_window_flags(search, "15m")
    search.add_argument("--limit", type=int, default=50, help="Maximum number of logs to return (default: %(default)s)")
    search.add_argument(
        "--sort",
        default="-timestamp",
        help="Sort order: -timestamp (newest first) or timestamp (oldest first) (default: %(default)s)",
    )
    search.add_argument(
        "--indexes",
        type=_comma_list,
        action="extend",
        help="Comma separated log indexes to search (default: all)",
    )
    _add_output_flag(search, "json", "json, table, or raw")
    search.set_defaults(handler=cmd_logs_search)

    aggregate = logs_commands.add_parser("aggregate", help="Aggregate logs and compute metrics")
    _add_filter_flags(aggregate)
    _add_window_flags(aggregate, "1h")
    aggregate.add_argument(
        "--compute",
        default="count",
        help="Aggregation: count, avg:<metric>, sum:<metric>, min:<metric>, max:<metric>, pct:<metric> (default: %(default)s)",
    )
    aggregate.add_argument("--group-by", default="", help="Facet to group by (e.g. service, status, host)")
    _add_output_flag(aggregate, "json", "json, table, or raw")
    aggregate.set_defaults(handler=cmd_logs_aggregate)

    tail = logs_commands.add_parser("tail", help="Stream logs in real time")
    _add_filter_flags(tail)
    tail.add_argument("--interval", type=_interval, default=2.0, help="Poll interval, e.g. 2, 5s, 500ms, 1m30s (default: 2s)")
    _add_output_flag(tail, "raw", "json, table, or raw")
    tail.set_defaults(handler=cmd_logs_tail)

    # traces
    traces = commands.add_parser("traces", help="Fetch and inspect Datadog traces")
    traces_commands = traces.add_subparsers(dest="traces_command", required=True)

    get = traces_commands.add_parser("get", help="Get all spans for a trace")
    get.add_argument("trace_id", help="Trace ID")
    _add_window_flags(get, "15m")
    _add_output_flag(get, "json", "json, table, raw, or perfetto")
    get.set_defaults(handler=cmd_traces_get)

    # configure
    configure = commands.add_parser("configure", help="Set Datadog API credentials")
    configure.add_argument("--api-key", default="", help="Datadog API key")
    configure.add_argument("--app-key", default="", help="Datadog application key")
    configure.add_argument("--site", default="datadoghq.com", help="Datadog site (default: %(default)s)")
    configure.set_defaults(handler=cmd_configure)

    return parser


# =============================================================================
# ENTRY POINT
# =============================================================================

async def _run_async(args: argparse.Namespace) -> None:
    cfg = load_config()
    cfg.validate_credentials()

    async with DatadogClient(cfg.base_url, cfg.api_key, cfg.app_key) as client:
        await args.handler(args, client, sys.stdout, utc_now())


def main(argv: Optional[List[str]] = None) -> int:
    """Run ddcli and return the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.handler is cmd_configure:
            cmd_configure(args, sys.stdout)
        else:
            asyncio.run(_run_async(args))
    except DDCliError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    return 0


def run(argv: Optional[List[str]] = None) -> None:
    sys.exit(main(argv))


if __name__ == "__main__":
    run()
