"""Server browser tying discovery, ranking and joining together.

One discovery cycle fetches the directory, probes every candidate and ranks
the live ones. Joining hands the chosen server (and the ones ranked below it,
for retries) to the process controller.
"""

import contextlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from types import TracebackType

from serverhop import ranking
from serverhop.console import ConnectionAttempt, ProcessController
from serverhop.discovery import MasterListFetcher, ServerProber
from serverhop.history import IdentityCache
from serverhop.models import FilterCriteria, ServerRecord
from serverhop.options import ServerHopOptions
from serverhop.selector import RECONNECT_LAST, Selection, Selector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryReport:
    """Outcome of one discovery cycle."""

    criteria: FilterCriteria
    records: tuple[ServerRecord, ...] = ()
    """Every probed record, live or not, in no particular order."""
    ranked: tuple[ServerRecord, ...] = field(default=())
    """Matching live records, best first."""

    @property
    def total(self) -> int:
        """Number of candidates probed."""
        return len(self.records)

    @property
    def alive(self) -> int:
        """Number of candidates that answered."""
        return sum(1 for record in self.records if record.is_alive)

    @property
    def matched(self) -> int:
        """Number of live records matching the criteria."""
        return len(self.ranked)

    @property
    def is_empty(self) -> bool:
        """Check if no server matched."""
        return not self.ranked

    def __str__(self) -> str:
        """Return summary string."""
        return f"[DiscoveryReport] total={self.total} alive={self.alive} matched={self.matched}"


class ServerBrowser:
    """Discovers, ranks and joins game servers.

    The history cache is held for the lifetime of the browser when used as an
    async context manager and flushed on exit, including on termination
    signals.
    """

    def __init__(
        self,
        options: ServerHopOptions | None = None,
        *,
        cache: IdentityCache | None = None,
        fetcher: MasterListFetcher | None = None,
        prober: ServerProber | None = None,
        controller: ProcessController | None = None,
    ) -> None:
        """Initialize server browser.

        Args:
            options: Browser options, defaults are used if omitted
            cache: History cache, built from the options if omitted
            fetcher: Directory client, built from the options if omitted
            prober: Server prober
            controller: Game process controller, built on first join if omitted

        """
        self._options = options or ServerHopOptions()
        self._cache = cache or IdentityCache(
            self._options.history_path,
            enable_persistence=self._options.enable_persistence,
        )
        self._fetcher = fetcher or MasterListFetcher(self._options.master_url, game=self._options.game)
        self._prober = prober or ServerProber()
        self._controller = controller
        self._exit_stack: contextlib.ExitStack | None = None

    @property
    def cache(self) -> IdentityCache:
        """Get history cache."""
        return self._cache

    @property
    def controller(self) -> ProcessController:
        """Get the game process controller, creating it on first use.

        Raises:
            RuntimeError: If no controller options are configured

        """
        if self._controller is None:
            if self._options.controller is None:
                msg = "Joining servers requires controller options"
                raise RuntimeError(msg)
            self._controller = ProcessController(self._options.controller, self._cache)
        return self._controller

    async def discover(self, criteria: FilterCriteria | None = None) -> DiscoveryReport:
        """Run one discovery cycle.

        Args:
            criteria: Filter criteria, no filtering if omitted

        Returns:
            Report with every probed record and the ranked matches

        Raises:
            FetchError: If the directory cannot be fetched

        """
        criteria = criteria or FilterCriteria()
        options = self._options

        candidates = await self._fetcher.fetch(options.fetch_timeout)
        records = await self._prober.probe_all(
            candidates,
            concurrency_limit=options.concurrency_limit,
            per_probe_timeout=options.probe_timeout,
            deadline=options.discovery_deadline,
        )
        ranked = ranking.apply(records, criteria, self._cache.entries)

        report = DiscoveryReport(criteria=criteria, records=tuple(records), ranked=tuple(ranked))
        if report.is_empty:
            logger.info("No server matches the current criteria (%d alive)", report.alive)
        else:
            logger.info("%d of %d live servers match", report.matched, report.alive)
        return report

    async def join(
        self,
        ranked: DiscoveryReport | Sequence[ServerRecord],
        selection: Selection,
        password: str | None = None,
    ) -> ConnectionAttempt | None:
        """Join the selected server.

        Retryable failures move on to the servers ranked below the selection.

        Args:
            ranked: Discovery report or ranked records
            selection: Index into the ranked records, ``RECONNECT_LAST`` or None
            password: Optional server password

        Returns:
            Final connection attempt, None if nothing was selected or there is no history

        Raises:
            IndexError: If the index is outside the ranked list

        """
        records = ranked.ranked if isinstance(ranked, DiscoveryReport) else tuple(ranked)

        if selection is None:
            return None
        if selection is RECONNECT_LAST:
            return await self.reconnect_last(password)
        if isinstance(selection, bool) or not 0 <= selection < len(records):
            msg = f"Selection {selection!r} out of range (0-{len(records) - 1})"
            raise IndexError(msg)

        attempts = await self.controller.connect_ranked(records[selection:], password)
        return attempts[-1]

    async def select_and_join(
        self,
        report: DiscoveryReport,
        selector: Selector,
        password: str | None = None,
    ) -> ConnectionAttempt | None:
        """Ask a selector for a choice and join it."""
        selection = selector.select(report.ranked, self._cache.last())
        return await self.join(report, selection, password)

    async def reconnect_last(self, password: str | None = None) -> ConnectionAttempt | None:
        """Join the most recently joined server, if any."""
        return await self.controller.reconnect_last(password)

    async def close(self) -> None:
        """Stop the game process and flush the history."""
        try:
            if self._controller is not None:
                await self._controller.close()
        finally:
            if self._exit_stack is not None:
                stack, self._exit_stack = self._exit_stack, None
                stack.close()

    async def __aenter__(self) -> "ServerBrowser":
        """Enter async context, holding the history store."""
        stack = contextlib.ExitStack()
        stack.enter_context(self._cache.persist())
        self._exit_stack = stack
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: TracebackType | None,
    ) -> None:
        """Exit async context."""
        await self.close()

    def __repr__(self) -> str:
        """Return string representation."""
        return f"ServerBrowser(master_url='{self._options.master_url}', cache={self._cache!r})"
