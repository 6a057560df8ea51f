"""Data models for server discovery and connection history.

This module defines the records that flow through a discovery cycle:
candidates from the directory service, probed server records, the filter
criteria applied to them, and the history entries kept for servers the user
has joined.
"""

from typing import TypeAlias
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

Address: TypeAlias = tuple[str, int]


def parse_address(address: str) -> Address:
    """Parse an address string in format 'host:port' to a (host, port) tuple.

    IPv6 hosts must be bracketed (``[::1]:27016``).

    Raises:
        ValueError: If the string is not a valid address

    """
    if ":" not in address:
        msg = f"Invalid address format: {address}. Expected 'host:port'"
        raise ValueError(msg)

    host, port_str = address.rsplit(":", 1)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not host:
        msg = f"Missing host in address: {address}"
        raise ValueError(msg)

    try:
        port = int(port_str)
    except ValueError as e:
        msg = f"Invalid port in address: {address}"
        raise ValueError(msg) from e

    validate_port(port)
    return host, port


def validate_port(port: int) -> int:
    """Ensure a port number is in range."""
    if port <= 0 or port > 65535:
        msg = f"Port out of range (1-65535): {port}"
        raise ValueError(msg)
    return port


def format_address(host: str, port: int) -> str:
    """Format (host, port) as 'host:port', bracketing IPv6 hosts."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class Liveness(StrEnum):
    """Outcome of probing a server."""

    UNKNOWN = "unknown"
    ALIVE = "alive"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class Candidate:
    """A server listed by the directory service, not yet confirmed live."""

    host: str
    port: int
    name: str = ""
    game: str = ""
    fingerprint: str | None = None
    """Stable directory identifier, survives address changes."""
    listed_population: int = 0
    listed_capacity: int = 0

    @property
    def address(self) -> Address:
        """Get (host, port) tuple."""
        return self.host, self.port

    def __str__(self) -> str:
        """Return 'host:port'."""
        return format_address(self.host, self.port)


@dataclass(frozen=True)
class ServerRecord:
    """Probed state of a single server.

    Records are created by the prober and never modified afterwards; a new
    discovery cycle produces new records.
    """

    host: str
    port: int
    name: str = ""
    population: int = 0
    capacity: int = 0
    map_name: str = ""
    protected: bool = False
    latency_ms: float | None = None
    probed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    liveness: Liveness = Liveness.UNKNOWN
    fingerprint: str | None = None
    game: str = ""
    gametype: str = ""

    @property
    def address(self) -> Address:
        """Get (host, port) tuple."""
        return self.host, self.port

    @property
    def is_alive(self) -> bool:
        """Check if the server answered its probe."""
        return self.liveness is Liveness.ALIVE

    @classmethod
    def unreachable(cls, candidate: Candidate) -> "ServerRecord":
        """Build the negative record for a candidate whose probe failed."""
        return cls(
            host=candidate.host,
            port=candidate.port,
            name=candidate.name,
            capacity=candidate.listed_capacity,
            liveness=Liveness.UNREACHABLE,
            fingerprint=candidate.fingerprint,
            game=candidate.game,
        )

    def __str__(self) -> str:
        """Return string representation of this record."""
        latency = f"{self.latency_ms:.0f}ms" if self.latency_ms is not None else "-"
        return (
            f"[ServerRecord] "
            f"{format_address(self.host, self.port)} "
            f"Name={self.name!r} "
            f"Players={self.population}/{self.capacity} "
            f"Map={self.map_name} "
            f"Latency={latency} "
            f"{self.liveness}"
        )


@dataclass(frozen=True)
class FilterCriteria:
    """User criteria applied by the filter and rank engine.

    Unset bounds (``None``) and empty sets do not filter anything.
    """

    min_population: int | None = None
    max_population: int | None = None
    max_latency_ms: float | None = None
    exclude_protected: bool = False
    include_maps: frozenset[str] = frozenset()
    exclude_maps: frozenset[str] = frozenset()
    exclude_joined: bool = False
    include_names: tuple[str, ...] = ()
    """Keep servers whose cleaned host name contains any of these terms."""
    exclude_names: tuple[str, ...] = ()
    """Drop servers whose cleaned host name contains any of these terms."""
    max_team_size: int | None = None
    """Drop servers whose capacity exceeds two teams of this size."""
    limit: int | None = None

    def __post_init__(self) -> None:
        """Validate bounds."""
        if (
            self.min_population is not None
            and self.max_population is not None
            and self.min_population > self.max_population
        ):
            msg = "min_population cannot exceed max_population"
            raise ValueError(msg)
        if self.limit is not None and self.limit < 0:
            msg = "limit cannot be negative"
            raise ValueError(msg)


@dataclass(frozen=True)
class HistoryEntry:
    """A server the user has successfully joined."""

    identity: str
    host: str
    port: int
    last_connected: datetime
    fingerprint: str | None = None
    name: str = ""

    @property
    def address(self) -> Address:
        """Get last-known (host, port) tuple."""
        return self.host, self.port

    def to_record(self) -> ServerRecord:
        """Build a record suitable for reconnecting to this server."""
        return ServerRecord(
            host=self.host,
            port=self.port,
            name=self.name,
            fingerprint=self.fingerprint,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dict."""
        return {
            "host": self.host,
            "port": self.port,
            "last_connected": self.last_connected.isoformat(),
            "fingerprint": self.fingerprint,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, identity: str, data: dict[str, object]) -> "HistoryEntry":
        """Deserialize from a dict produced by ``to_dict``.

        Raises:
            ValueError: If required fields are missing or malformed

        """
        try:
            host = data["host"]
            port = data["port"]
            last_connected = datetime.fromisoformat(str(data["last_connected"]))
        except KeyError as e:
            msg = f"History entry {identity} missing field {e}"
            raise ValueError(msg) from e

        if not isinstance(host, str) or not isinstance(port, int):
            msg = f"History entry {identity} has invalid address"
            raise ValueError(msg)
        validate_port(port)

        if last_connected.tzinfo is None:
            last_connected = last_connected.replace(tzinfo=UTC)

        fingerprint = data.get("fingerprint")
        name = data.get("name", "")
        return cls(
            identity=identity,
            host=host,
            port=port,
            last_connected=last_connected,
            fingerprint=fingerprint if isinstance(fingerprint, str) else None,
            name=name if isinstance(name, str) else "",
        )
