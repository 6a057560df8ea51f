"""Console output classification.

The game exposes its state only as free-text console output. Every line read
from the pseudo-terminal goes through ``classify_line``, which matches it
against configurable textual signatures. Control flow in the controller only
ever sees the resulting ``ConsoleEvent``.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from serverhop.utils.text import strip_ansi


class ConsoleEventKind(StrEnum):
    """Classification of a console line."""

    PROMPT_READY = "prompt-ready"
    CONNECT_ACKNOWLEDGED = "connect-acknowledged"
    CONNECTION_ERROR = "connection-error"
    UNRELATED = "unrelated"


class FailureClass(StrEnum):
    """Whether a failed connection is worth retrying elsewhere."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class FailurePattern:
    """A console signature that means the connection failed."""

    pattern: re.Pattern[str]
    failure_class: FailureClass = FailureClass.TRANSIENT

    @classmethod
    def compile(
        cls, pattern: str, failure_class: FailureClass | str = FailureClass.TRANSIENT
    ) -> "FailurePattern":
        """Compile a case-insensitive failure pattern."""
        return cls(re.compile(pattern, re.IGNORECASE), FailureClass(failure_class))


@dataclass(frozen=True)
class ConsoleEvent:
    """A classified line of console output."""

    kind: ConsoleEventKind
    line: str
    matched: str = ""
    failure_class: FailureClass | None = None


def _compile_all(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


DEFAULT_PROMPT_PATTERNS = (
    r"^\s*\]\s*$",
    r"console (?:is )?ready",
    r"ready to accept commands",
)

DEFAULT_SUCCESS_PATTERNS = (
    r"connected to server",
    r"successfully connected",
    r"^\s*joined server",
)

DEFAULT_FAILURE_PATTERNS = (
    (r"server is full", FailureClass.TRANSIENT),
    (r"connection refused", FailureClass.TRANSIENT),
    (r"server (?:is )?busy", FailureClass.TRANSIENT),
    (r"server did not respond", FailureClass.TRANSIENT),
    (r"connection (?:timed out|interrupted)", FailureClass.TRANSIENT),
    (r"\bbanned\b", FailureClass.PERMANENT),
    (r"kicked", FailureClass.PERMANENT),
    (r"invalid password", FailureClass.PERMANENT),
    (r"(?:version mismatch|incompatible (?:version|protocol)|wrong version)", FailureClass.PERMANENT),
)


@dataclass(frozen=True)
class ConsolePatterns:
    """Textual signatures recognized in the game's console output."""

    prompt: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _compile_all(DEFAULT_PROMPT_PATTERNS)
    )
    success: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _compile_all(DEFAULT_SUCCESS_PATTERNS)
    )
    failure: tuple[FailurePattern, ...] = field(
        default_factory=lambda: tuple(
            FailurePattern.compile(pattern, failure_class)
            for pattern, failure_class in DEFAULT_FAILURE_PATTERNS
        )
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConsolePatterns":
        """Build patterns from plain data.

        Expected keys are ``prompt`` and ``success`` (lists of regexes) and
        ``failure`` (list of ``{"pattern": ..., "class": "transient"|"permanent"}``).
        Missing keys keep their defaults.

        Raises:
            ValueError: If a pattern or failure class is invalid

        """
        defaults = cls()
        try:
            prompt = _compile_all(data["prompt"]) if "prompt" in data else defaults.prompt
            success = _compile_all(data["success"]) if "success" in data else defaults.success
            if "failure" in data:
                failure = tuple(
                    FailurePattern.compile(
                        item["pattern"], item.get("class", FailureClass.TRANSIENT)
                    )
                    for item in data["failure"]
                )
            else:
                failure = defaults.failure
        except re.error as e:
            msg = f"Invalid console pattern: {e}"
            raise ValueError(msg) from e
        except (KeyError, TypeError) as e:
            msg = f"Malformed console pattern definition: {e}"
            raise ValueError(msg) from e

        return cls(prompt=prompt, success=success, failure=failure)


def classify_line(line: str, patterns: ConsolePatterns) -> ConsoleEvent:
    """Classify one line of console output.

    Failure signatures are checked before success signatures so a line such as
    "connection refused by server" is never mistaken for a success.

    Args:
        line: Raw console line
        patterns: Signatures to match against

    Returns:
        The classified console event

    """
    text = strip_ansi(line).strip("\r\n")

    for failure in patterns.failure:
        match = failure.pattern.search(text)
        if match:
            return ConsoleEvent(
                ConsoleEventKind.CONNECTION_ERROR,
                text,
                matched=match.group(0),
                failure_class=failure.failure_class,
            )

    for pattern in patterns.success:
        match = pattern.search(text)
        if match:
            return ConsoleEvent(ConsoleEventKind.CONNECT_ACKNOWLEDGED, text, matched=match.group(0))

    for pattern in patterns.prompt:
        match = pattern.search(text)
        if match:
            return ConsoleEvent(ConsoleEventKind.PROMPT_READY, text, matched=match.group(0))

    return ConsoleEvent(ConsoleEventKind.UNRELATED, text)
