"""Continuous polling of new logs (``ddcli logs tail``).

Every ``interval`` seconds the poller searches the window between the end of
the previous window and now, oldest first, and writes the logs it has not
shown yet. Fetch failures are reported on the notice channel and polling
continues. The loop stops when the stop event is set; a pending wait or
request is abandoned right away.
"""

import asyncio
import enum
import logging
import sys
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TextIO

from .errors import FetchFailure
from .models import LogEntry, LogsListResponse, SearchLogsParams
from .output import Formatter
from .pagination import fetch_logs

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0
# Logs requested per tick
TAIL_BATCH_SIZE = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def stderr_notice(message: str) -> None:
    """Operator-visible notice channel: one line on stderr."""
    print(message, file=sys.stderr, flush=True)


class TailStatus(enum.Enum):
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass
class TailState:
    """End of the last processed window and id of the last log written."""

    last_seen: datetime
    last_id: str = ""


class TailPoller:
    """Poll a log query on a fixed interval and write each new log once.

    Parameters
    ----------
    search : Callable
        Async log search capability, e.g. ``DatadogClient.search_logs``.
    query : str
        Log query to follow.
    formatter : Formatter
        Renderer used for each batch of new logs.
    out : TextIO
        Stream the logs are written to.
    interval : float
        Seconds between two polls (default: 2.0).
    clock : Callable[[], datetime]
        Source of "now" (default: current UTC time).
    notice : Callable[[str], None]
        Sink for non-fatal errors (default: stderr).

    Examples
    --------
    ```python
    stop = asyncio.Event()
    poller = TailPoller(client.search_logs, "service:web", RawFormatter(), sys.stdout)
    await poller.run(stop)
    ```
    """

    def __init__(
        self,
        search: Callable[[SearchLogsParams], Awaitable[LogsListResponse]],
        query: str,
        formatter: Formatter,
        out: TextIO,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], datetime] = utc_now,
        notice: Callable[[str], None] = stderr_notice,
    ):
        self._search = search
        self.query = query
        self._formatter = formatter
        self._out = out
        self.interval = interval
        self._clock = clock
        self._notice = notice
        self.state: Optional[TailState] = None
        self.status = TailStatus.POLLING

    def start(self, at: Optional[datetime] = None) -> TailState:
        """Begin tailing from ``at`` (default: the current instant)."""
        self.state = TailState(last_seen=at or self._clock())
        return self.state

    async def poll_once(self) -> List[LogEntry]:
        """Run one tick: fetch, drop the already written log, write the rest.

        Returns
        -------
        List[LogEntry]
            Logs written during this tick (empty on failure).
        """
        state = self.state or self.start()
        now = self._clock()
        params = SearchLogsParams(
            query=self.query,
            from_time=state.last_seen,
            to_time=now,
            sort="timestamp",
            limit=TAIL_BATCH_SIZE,
        )
        logger.debug(f"Polling logs from {state.last_seen.isoformat()} to {now.isoformat()}")

        try:
            entries = await fetch_logs(self._search, params, TAIL_BATCH_SIZE)
        except FetchFailure as e:
            logger.debug("Tail poll failed", exc_info=True)
            self._notice(f"Error polling logs: {e}")
            return []

        # The window start is inclusive, so the last log written can come back
        new_entries = [entry for entry in entries if entry.id != state.last_id]
        if not new_entries:
            return []

        self._formatter.format_logs(self._out, LogsListResponse(data=new_entries))
        last = new_entries[-1]
        state.last_seen = last.attributes.timestamp
        state.last_id = last.id
        return new_entries

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until ``stop`` is set.

        Output already written is kept. A RenderFailure ends the loop and
        propagates.
        """
        if self.state is None:
            self.start()
        self.status = TailStatus.POLLING

        try:
            while not stop.is_set():
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.interval)
                    break
                except asyncio.TimeoutError:
                    pass

                poll = asyncio.ensure_future(self.poll_once())
                stopped = asyncio.ensure_future(stop.wait())
                done, _ = await asyncio.wait({poll, stopped}, return_when=asyncio.FIRST_COMPLETED)

                if poll not in done:
                    # Stopped mid-request, its result is discarded
                    poll.cancel()
                    with suppress(asyncio.CancelledError):
                        await poll
                    break

                stopped.cancel()
                with suppress(asyncio.CancelledError):
                    await stopped
                poll.result()
        finally:
            self.status = TailStatus.STOPPED
