"""Tests for concurrent server probing."""

import asyncio

import pytest

from serverhop.discovery import InfoResult, ServerProber
from serverhop.errors import QueryError
from serverhop.models import Candidate, Liveness


def candidates(count: int) -> list[Candidate]:
    """Create candidates on consecutive ports."""
    return [
        Candidate(host="203.0.113.7", port=27016 + i, name=f"Listed {i}", listed_capacity=18, fingerprint=f"fp-{i}")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_every_candidate_yields_one_record() -> None:
    async def query(host: str, port: int, timeout: float) -> InfoResult:
        if port % 3 == 0:
            raise QueryError("bad packet")
        if port % 3 == 1:
            await asyncio.sleep(timeout * 10)
        return InfoResult(host, port, {"hostname": f"srv{port}", "clients": "5", "mapname": "mp_rust"}, 12.5)

    prober = ServerProber(query=query)
    records = await prober.probe_all(candidates(9), concurrency_limit=4, per_probe_timeout=0.1)

    assert sorted(r.port for r in records) == [c.port for c in candidates(9)]
    alive = [r for r in records if r.is_alive]
    assert len(alive) == 3
    assert all(r.name.startswith("srv") and r.population == 5 and r.latency_ms == 12.5 for r in alive)
    assert prober.last_summary is not None
    assert prober.last_summary.total == 9
    assert prober.last_summary.alive == 3
    assert prober.last_summary.unreachable == 6


@pytest.mark.asyncio
async def test_unreachable_records_keep_candidate_data() -> None:
    async def query(host: str, port: int, timeout: float) -> InfoResult:
        raise OSError("network unreachable")

    records = await ServerProber(query=query).probe_all(candidates(1), per_probe_timeout=0.1)

    assert records[0].liveness is Liveness.UNREACHABLE
    assert records[0].name == "Listed 0"
    assert records[0].fingerprint == "fp-0"


@pytest.mark.asyncio
async def test_unexpected_error_becomes_unreachable() -> None:
    async def query(host: str, port: int, timeout: float) -> InfoResult:
        raise RuntimeError("bug")

    records = await ServerProber(query=query).probe_all(candidates(2), per_probe_timeout=0.1)

    assert [r.liveness for r in records] == [Liveness.UNREACHABLE, Liveness.UNREACHABLE]


@pytest.mark.asyncio
async def test_concurrency_is_bounded() -> None:
    in_flight = 0
    peak = 0

    async def query(host: str, port: int, timeout: float) -> InfoResult:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return InfoResult(host, port, {}, 1.0)

    records = await ServerProber(query=query).probe_all(candidates(20), concurrency_limit=3, per_probe_timeout=1.0)

    assert len(records) == 20
    assert peak == 3


@pytest.mark.asyncio
async def test_deadline_closes_the_batch() -> None:
    hung: list[asyncio.Event] = []

    async def query(host: str, port: int, timeout: float) -> InfoResult:
        if port == 27016:
            return InfoResult(host, port, {"clients": "7"}, 3.0)
        event = asyncio.Event()
        hung.append(event)
        await event.wait()
        return InfoResult(host, port, {}, 1.0)

    prober = ServerProber(query=query)
    loop = asyncio.get_running_loop()
    started = loop.time()
    records = await prober.probe_all(candidates(3), per_probe_timeout=30.0, deadline=0.2)

    assert loop.time() - started < 5.0
    assert len(records) == 3
    by_port = {r.port: r for r in records}
    assert by_port[27016].is_alive
    assert by_port[27016].population == 7
    assert not by_port[27017].is_alive
    assert not by_port[27018].is_alive
    assert prober.last_summary is not None
    assert prober.last_summary.cut_off == 2


@pytest.mark.asyncio
async def test_cancellation_cancels_probes() -> None:
    started = asyncio.Event()
    cancelled = 0

    async def query(host: str, port: int, timeout: float) -> InfoResult:
        nonlocal cancelled
        started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled += 1
            raise
        return InfoResult(host, port, {}, 1.0)

    task = asyncio.create_task(ServerProber(query=query).probe_all(candidates(4), per_probe_timeout=60.0))
    await started.wait()
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)
    assert cancelled == 4


@pytest.mark.asyncio
async def test_empty_batch() -> None:
    prober = ServerProber()
    assert await prober.probe_all([]) == []
    assert prober.last_summary is not None
    assert prober.last_summary.total == 0


@pytest.mark.asyncio
async def test_invalid_concurrency_limit() -> None:
    with pytest.raises(ValueError, match="concurrency_limit"):
        await ServerProber().probe_all(candidates(1), concurrency_limit=0)


@pytest.mark.asyncio
async def test_protected_flag_from_info() -> None:
    async def query(host: str, port: int, timeout: float) -> InfoResult:
        return InfoResult(host, port, {"g_needpass": "1", "sv_maxclients": "bad"}, 1.0)

    records = await ServerProber(query=query).probe_all(candidates(1))

    assert records[0].protected
    assert records[0].capacity == 18
