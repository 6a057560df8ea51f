"""Connection attempt state machine."""

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from serverhop.console.patterns import FailureClass
from serverhop.errors import ErrorKind
from serverhop.models import ServerRecord, format_address

logger = logging.getLogger(__name__)


class AttemptPhase(StrEnum):
    """Phases of a connection attempt."""

    LAUNCHING = "launching"
    AWAITING_PROMPT = "awaiting-prompt"
    SENDING_COMMAND = "sending-command"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_PHASES = frozenset({AttemptPhase.CONNECTED, AttemptPhase.FAILED, AttemptPhase.ABORTED})

ALLOWED_TRANSITIONS: dict[AttemptPhase, frozenset[AttemptPhase]] = {
    AttemptPhase.LAUNCHING: frozenset({AttemptPhase.AWAITING_PROMPT}),
    AttemptPhase.AWAITING_PROMPT: frozenset({AttemptPhase.SENDING_COMMAND}),
    AttemptPhase.SENDING_COMMAND: frozenset({AttemptPhase.CONNECTING}),
    AttemptPhase.CONNECTING: frozenset({AttemptPhase.CONNECTED}),
}


@dataclass
class ConnectionAttempt:
    """One try at joining a server through the game console.

    Failure and abort are reachable from every non-terminal phase.
    """

    target: ServerRecord
    command: str = ""
    retry_count: int = 0
    phase: AttemptPhase = AttemptPhase.LAUNCHING
    history: list[AttemptPhase] = field(default_factory=lambda: [AttemptPhase.LAUNCHING])
    reason: str = ""
    """Human-readable reason for a failed or aborted attempt."""
    error_kind: ErrorKind | None = None
    failure_class: FailureClass | None = None
    pid: int | None = None
    """Process id of the game process driven by this attempt."""

    @property
    def is_resolved(self) -> bool:
        """Check if the attempt reached a terminal phase."""
        return self.phase in TERMINAL_PHASES

    @property
    def succeeded(self) -> bool:
        """Check if the attempt connected."""
        return self.phase is AttemptPhase.CONNECTED

    def advance(self, phase: AttemptPhase) -> None:
        """Move to the next phase of the happy path.

        Raises:
            RuntimeError: If the transition is not allowed

        """
        if phase not in ALLOWED_TRANSITIONS.get(self.phase, frozenset()):
            msg = f"Invalid attempt transition {self.phase} -> {phase}"
            raise RuntimeError(msg)
        self._enter(phase)

    def fail(
        self,
        reason: str,
        kind: ErrorKind,
        failure_class: FailureClass = FailureClass.PERMANENT,
    ) -> None:
        """Resolve the attempt as failed."""
        if self.is_resolved:
            return
        self.reason = reason
        self.error_kind = kind
        self.failure_class = failure_class
        self._enter(AttemptPhase.FAILED)
        logger.warning("Connection to %s failed (%s): %s", self.address, kind, reason)

    def abort(self, reason: str = "cancelled") -> None:
        """Resolve the attempt as aborted."""
        if self.is_resolved:
            return
        self.reason = reason
        self.error_kind = ErrorKind.CANCELLED
        self._enter(AttemptPhase.ABORTED)
        logger.info("Connection to %s aborted: %s", self.address, reason)

    @property
    def address(self) -> str:
        """Get 'host:port' of the target."""
        return format_address(self.target.host, self.target.port)

    def _enter(self, phase: AttemptPhase) -> None:
        logger.debug("Attempt %s: %s -> %s", self.address, self.phase, phase)
        self.phase = phase
        self.history.append(phase)

    def __str__(self) -> str:
        """Return string representation."""
        suffix = f" ({self.error_kind}: {self.reason})" if self.reason else ""
        return f"[ConnectionAttempt] {self.address} {self.phase}{suffix}"
