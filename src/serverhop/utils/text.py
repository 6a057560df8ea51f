"""Text helpers for host names and console output."""

import re

COLOR_ESCAPE = "^"

# CSI / OSC sequences emitted by terminal-aware programs
ANSI_ESCAPE_REGEX = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07]*\x07|[@-Z\\-_])")


def clean_hostname(name: str) -> str:
    """Strip in-game colour codes from a host name and lowercase it.

    Colour codes are a caret followed by one character (``^1Red``). A
    trailing caret with nothing after it is dropped.

    Args:
        name: Raw host name as reported by the server

    Returns:
        Lowercase host name without colour codes

    """
    chars: list[str] = []
    skip_next = False
    for char in name:
        if skip_next:
            skip_next = False
            continue
        if char == COLOR_ESCAPE:
            skip_next = True
            continue
        chars.append(char.lower())
    return "".join(chars)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from console output."""
    return ANSI_ESCAPE_REGEX.sub("", text)


def lowercase_terms(terms: list[str] | tuple[str, ...] | frozenset[str]) -> tuple[str, ...]:
    """Normalize search terms for case-insensitive matching."""
    return tuple(term.strip().lower() for term in terms if term.strip())
