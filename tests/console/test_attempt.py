"""Tests for the connection attempt state machine."""

import pytest

from serverhop.console import AttemptPhase, ConnectionAttempt, FailureClass
from serverhop.errors import ErrorKind


def test_happy_path(record_factory) -> None:
    attempt = ConnectionAttempt(target=record_factory())
    for phase in (
        AttemptPhase.AWAITING_PROMPT,
        AttemptPhase.SENDING_COMMAND,
        AttemptPhase.CONNECTING,
        AttemptPhase.CONNECTED,
    ):
        attempt.advance(phase)

    assert attempt.succeeded
    assert attempt.is_resolved
    assert attempt.history[0] is AttemptPhase.LAUNCHING
    assert attempt.history[-1] is AttemptPhase.CONNECTED


def test_skipping_a_phase_is_rejected(record_factory) -> None:
    attempt = ConnectionAttempt(target=record_factory())
    with pytest.raises(RuntimeError, match="Invalid attempt transition"):
        attempt.advance(AttemptPhase.CONNECTING)


def test_fail_from_any_phase(record_factory) -> None:
    attempt = ConnectionAttempt(target=record_factory())
    attempt.advance(AttemptPhase.AWAITING_PROMPT)
    attempt.fail("no prompt detected", ErrorKind.PROTOCOL_MISMATCH)

    assert attempt.phase is AttemptPhase.FAILED
    assert attempt.reason == "no prompt detected"
    assert attempt.failure_class is FailureClass.PERMANENT
    assert "protocol_mismatch" in str(attempt)


def test_resolved_attempt_ignores_later_outcomes(record_factory) -> None:
    attempt = ConnectionAttempt(target=record_factory())
    attempt.abort()
    attempt.fail("late", ErrorKind.NETWORK)

    assert attempt.phase is AttemptPhase.ABORTED
    assert attempt.error_kind is ErrorKind.CANCELLED
    assert attempt.history == [AttemptPhase.LAUNCHING, AttemptPhase.ABORTED]

    with pytest.raises(RuntimeError):
        attempt.advance(AttemptPhase.AWAITING_PROMPT)
