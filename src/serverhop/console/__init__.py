"""Serverhop console package.

This package drives the external game process through a pseudo-terminal:
console line classification, safe command construction, the connection
attempt state machine and the process controller itself.
"""

from serverhop.console.attempt import AttemptPhase, ConnectionAttempt
from serverhop.console.command import CommandTemplate, build_connect_command
from serverhop.console.controller import ProcessController, spawn_game
from serverhop.console.options import ControllerOptions, RetryPolicy
from serverhop.console.patterns import (
    ConsoleEvent,
    ConsoleEventKind,
    ConsolePatterns,
    FailureClass,
    FailurePattern,
    classify_line,
)

__all__ = [
    "AttemptPhase",
    "CommandTemplate",
    "ConnectionAttempt",
    "ConsoleEvent",
    "ConsoleEventKind",
    "ConsolePatterns",
    "ControllerOptions",
    "FailureClass",
    "FailurePattern",
    "ProcessController",
    "RetryPolicy",
    "build_connect_command",
    "classify_line",
    "spawn_game",
]
