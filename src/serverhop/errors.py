"""Error taxonomy for serverhop.

Every failure that reaches a user carries a stable ``ErrorKind`` and a
human-readable reason. Component-local problems (one unreachable server, one
unreadable cache file) are absorbed into data instead of being raised.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable error codes surfaced alongside failure reasons."""

    NETWORK = "network"
    FETCH_TIMEOUT = "fetch_timeout"
    FETCH_STATUS = "fetch_status"
    FETCH_MALFORMED = "fetch_malformed"
    QUERY = "query"
    PROCESS_SPAWN = "process_spawn"
    PROCESS_EXITED = "process_exited"
    PROTOCOL_MISMATCH = "protocol_mismatch"
    CONNECTION_REJECTED = "connection_rejected"
    COMMAND_REJECTED = "command_rejected"
    CACHE_CORRUPTION = "cache_corruption"
    CANCELLED = "cancelled"


class ServerHopError(Exception):
    """Base class for serverhop errors."""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, reason: str, kind: ErrorKind | None = None) -> None:
        """Initialize error.

        Args:
            reason: Human-readable reason
            kind: Error kind, defaults to the class kind

        """
        super().__init__(reason)
        self.reason = reason
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        """Return ``kind: reason``."""
        return f"{self.kind}: {self.reason}"


class FetchError(ServerHopError):
    """The server directory could not be fetched or parsed."""

    kind = ErrorKind.NETWORK


class QueryError(ServerHopError):
    """A single server query failed."""

    kind = ErrorKind.QUERY


class ProcessSpawnError(ServerHopError):
    """The external game process could not be started."""

    kind = ErrorKind.PROCESS_SPAWN


class CommandRejectedError(ServerHopError):
    """Input could not be turned into a safe console command."""

    kind = ErrorKind.COMMAND_REJECTED


class CacheCorruptionError(ServerHopError):
    """The history store exists but could not be decoded."""

    kind = ErrorKind.CACHE_CORRUPTION
