"""Configuration options for the game process controller."""

from dataclasses import dataclass, field

from serverhop.console.command import CommandTemplate
from serverhop.console.patterns import ConsolePatterns, FailureClass


@dataclass
class RetryPolicy:
    """Which failed connections are retried against the next candidate."""

    max_retries: int = 2
    """Additional candidates tried after the first failure."""
    retry_classes: frozenset[FailureClass] = frozenset({FailureClass.TRANSIENT})
    """Failure classes eligible for a retry."""
    timeout_class: FailureClass = FailureClass.TRANSIENT
    """Class assigned when the server never answers the connect command."""
    no_prompt_class: FailureClass = FailureClass.PERMANENT
    """Class assigned when the game never reaches its console prompt."""
    rejected_class: FailureClass = FailureClass.TRANSIENT
    """Class assigned when a candidate's address cannot be put into a command."""

    def allows(self, failure_class: FailureClass | None, retries_used: int) -> bool:
        """Check if another candidate may be tried.

        Args:
            failure_class: Class of the failure that just happened
            retries_used: Retries already spent

        """
        return (
            failure_class is not None
            and failure_class in self.retry_classes
            and retries_used < self.max_retries
        )


@dataclass
class ControllerOptions:
    """Configuration options for ProcessController."""

    executable: str
    """Game executable started inside the pseudo-terminal."""
    args: list[str] = field(default_factory=list)
    """Arguments passed to the executable."""
    cwd: str | None = None
    """Working directory of the game process."""
    env: dict[str, str] | None = None
    """Environment of the game process, inherits ours when None."""
    encoding: str = "utf-8"
    """Encoding used to decode console output."""
    prompt_timeout: float = 60.0
    """Seconds to wait for the console prompt after launch."""
    connect_timeout: float = 30.0
    """Seconds to wait for a success or failure line after connecting."""
    patterns: ConsolePatterns = field(default_factory=ConsolePatterns)
    """Console signatures for prompt, success and failure."""
    command: CommandTemplate = field(default_factory=CommandTemplate)
    """Console command grammar."""
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    """Automatic retry policy for ranked connection attempts."""
    console_history_size: int = 500
    """Number of console lines kept for display."""
    dimensions: tuple[int, int] = (24, 160)
    """Rows and columns of the pseudo-terminal."""
    close_delay: float = 0.01
    """Seconds to wait between termination signals when killing the game."""

