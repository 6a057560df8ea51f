"""Global fixtures for serverhop tests."""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from serverhop.history import IdentityCache
from serverhop.models import Liveness, ServerRecord
from serverhop.options import ControllerOptions

FAKE_GAME = Path(__file__).parent / "stubs" / "fake_game.py"


def make_record(
    host: str = "203.0.113.10",
    port: int = 27016,
    *,
    name: str = "Test Server",
    population: int = 10,
    capacity: int = 18,
    latency_ms: float | None = 50.0,
    map_name: str = "mp_crash",
    protected: bool = False,
    liveness: Liveness = Liveness.ALIVE,
    fingerprint: str | None = None,
) -> ServerRecord:
    """Create a probed server record."""
    return ServerRecord(
        host=host,
        port=port,
        name=name,
        population=population,
        capacity=capacity,
        map_name=map_name,
        protected=protected,
        latency_ms=latency_ms,
        liveness=liveness,
        fingerprint=fingerprint,
    )


@pytest.fixture
def record_factory() -> Callable[..., ServerRecord]:
    """Fixture returning the record factory."""
    return make_record


@pytest.fixture
def memory_cache() -> IdentityCache:
    """Fixture for an in-memory identity cache."""
    return IdentityCache(None, enable_persistence=False)


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    """Fixture for a temporary history file path."""
    return tmp_path / "history.json"


@pytest.fixture
def game_options() -> Callable[..., ControllerOptions]:
    """Fixture building controller options that run the fake game."""

    def _make(mode: str = "ok", **overrides: object) -> ControllerOptions:
        settings: dict[str, object] = {
            "executable": sys.executable,
            "args": ["-u", str(FAKE_GAME), mode],
            "prompt_timeout": 10.0,
            "connect_timeout": 10.0,
        }
        settings.update(overrides)
        return ControllerOptions(**settings)  # type: ignore[arg-type]

    return _make
