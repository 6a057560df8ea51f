"""Concurrent server probing.

The prober turns directory candidates into server records by querying every
candidate in parallel. Concurrency is bounded, each probe has its own
timeout, and an optional batch deadline cuts off stragglers. Every candidate
yields exactly one record.
"""

from typing import TypeAlias
import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from serverhop.discovery.query import InfoResult, query_info
from serverhop.errors import QueryError
from serverhop.models import Candidate, Liveness, ServerRecord

logger = logging.getLogger(__name__)

QueryFunc: TypeAlias = Callable[[str, int, float], Awaitable[InfoResult]]


@dataclass(frozen=True)
class ProbeSummary:
    """Counts for one probe batch."""

    total: int
    alive: int
    cut_off: int = 0
    """Probes cancelled by the batch deadline."""

    @property
    def unreachable(self) -> int:
        """Number of candidates that did not answer."""
        return self.total - self.alive


def record_from_info(candidate: Candidate, result: InfoResult) -> ServerRecord:
    """Build a live record from a query answer.

    Directory values fill in for fields the server does not report.
    """
    info = result.info
    return ServerRecord(
        host=candidate.host,
        port=candidate.port,
        name=info.get("hostname") or candidate.name,
        population=result.get_int("clients", candidate.listed_population),
        capacity=result.get_int("sv_maxclients", candidate.listed_capacity),
        map_name=info.get("mapname", ""),
        protected=result.get_flag("isPrivate", "g_needpass"),
        latency_ms=result.latency_ms,
        probed_at=datetime.now(UTC),
        liveness=Liveness.ALIVE,
        fingerprint=candidate.fingerprint,
        game=candidate.game,
        gametype=info.get("gametype", ""),
    )


class ServerProber:
    """Probes candidate servers concurrently."""

    def __init__(self, query: QueryFunc = query_info) -> None:
        """Initialize prober.

        Args:
            query: Coroutine function ``(host, port, timeout) -> InfoResult``

        """
        self._query = query
        self._last_summary: ProbeSummary | None = None

    @property
    def last_summary(self) -> ProbeSummary | None:
        """Get counts from the most recent batch."""
        return self._last_summary

    async def probe(self, candidate: Candidate, timeout: float) -> ServerRecord:
        """Probe a single candidate.

        Failures never raise; they produce an unreachable record.
        """
        try:
            result = await asyncio.wait_for(self._query(candidate.host, candidate.port, timeout), timeout)
        except TimeoutError:
            logger.debug("Probe of %s timed out", candidate)
            return ServerRecord.unreachable(candidate)
        except (QueryError, OSError) as e:
            logger.debug("Probe of %s failed: %s", candidate, e)
            return ServerRecord.unreachable(candidate)

        return record_from_info(candidate, result)

    async def probe_all(
        self,
        candidates: Iterable[Candidate],
        concurrency_limit: int = 50,
        per_probe_timeout: float = 2.0,
        deadline: float | None = None,
    ) -> list[ServerRecord]:
        """Probe every candidate.

        Args:
            candidates: Servers to probe
            concurrency_limit: Maximum number of probes in flight
            per_probe_timeout: Timeout in seconds for each probe
            deadline: Seconds after which pending probes are cancelled, None waits for all

        Returns:
            One record per candidate, in no particular order

        """
        if concurrency_limit < 1:
            msg = "concurrency_limit must be at least 1"
            raise ValueError(msg)

        candidates = list(candidates)
        if not candidates:
            self._last_summary = ProbeSummary(total=0, alive=0)
            return []

        semaphore = asyncio.Semaphore(concurrency_limit)

        async def bounded(candidate: Candidate) -> ServerRecord:
            async with semaphore:
                return await self.probe(candidate, per_probe_timeout)

        tasks = {asyncio.create_task(bounded(c), name=f"probe-{c}"): c for c in candidates}
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline)
        finally:
            # Also reached when the caller is cancelled; no probe outlives the batch.
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        if pending:
            logger.info("Discovery deadline cut off %d pending probes", len(pending))

        records: list[ServerRecord] = []
        for task in done:
            if (error := task.exception()) is not None:
                logger.warning("Probe of %s raised %r", tasks[task], error)
                records.append(ServerRecord.unreachable(tasks[task]))
            else:
                records.append(task.result())
        records.extend(ServerRecord.unreachable(tasks[task]) for task in pending)

        alive = sum(1 for record in records if record.is_alive)
        self._last_summary = ProbeSummary(total=len(records), alive=alive, cut_off=len(pending))
        logger.info("Probed %d servers, %d alive", len(records), alive)
        return records
