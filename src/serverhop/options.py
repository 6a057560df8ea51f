"""Configuration options for serverhop components."""

from dataclasses import dataclass

from serverhop.console.options import ControllerOptions, RetryPolicy

DEFAULT_MASTER_URL = "https://master.iw4.zip/instance"
DEFAULT_GAME = "H2M"

__all__ = [
    "DEFAULT_GAME",
    "DEFAULT_MASTER_URL",
    "ControllerOptions",
    "RetryPolicy",
    "ServerHopOptions",
]


@dataclass
class ServerHopOptions:
    """Configuration options for ServerBrowser."""

    master_url: str = DEFAULT_MASTER_URL
    """Directory endpoint listing candidate servers."""
    game: str | None = DEFAULT_GAME
    """Only keep directory entries for this game id, None keeps all."""
    history_path: str = "history.json"
    """Path to the joined-server history file."""
    enable_persistence: bool = True
    """Whether the history is read from and written to disk."""
    fetch_timeout: float = 10.0
    """Timeout in seconds for the directory request."""
    concurrency_limit: int = 50
    """Maximum number of probes in flight."""
    probe_timeout: float = 2.0
    """Timeout in seconds for a single server query."""
    discovery_deadline: float | None = 15.0
    """Global deadline for a probe batch, None waits for every probe."""
    controller: ControllerOptions | None = None
    """Game process options, required for joining servers."""
