"""Tests for connect command construction."""

import pytest

from serverhop.console import CommandTemplate, build_connect_command
from serverhop.errors import CommandRejectedError, ErrorKind


def test_plain_connect() -> None:
    assert build_connect_command("203.0.113.7", 27016) == "connect 203.0.113.7:27016"


def test_hostname_connect() -> None:
    assert build_connect_command("play.example.com", 28960) == "connect play.example.com:28960"


def test_ipv6_is_bracketed_and_quoted() -> None:
    assert build_connect_command("2001:db8::1", 27016) == "connect '[2001:db8::1]:27016'"


def test_password_is_quoted() -> None:
    command = build_connect_command("203.0.113.7", 27016, "s3cret pass")
    assert command == "password 's3cret pass'; connect 203.0.113.7:27016"


def test_custom_template() -> None:
    template = CommandTemplate(connect="join {address}", password="pw {password}", separator=" && ")
    command = build_connect_command("203.0.113.7", 27016, "abc", template)
    assert command == "pw abc && join 203.0.113.7:27016"


@pytest.mark.parametrize(
    "host",
    ["", "evil.com; quit", "host name", "-leading.dash", "a" * 300, "203.0.113.7\nquit"],
)
def test_invalid_host_rejected(host: str) -> None:
    with pytest.raises(CommandRejectedError) as exc_info:
        build_connect_command(host, 27016)
    assert exc_info.value.kind is ErrorKind.COMMAND_REJECTED


@pytest.mark.parametrize("port", [0, -1, 65536])
def test_invalid_port_rejected(port: int) -> None:
    with pytest.raises(CommandRejectedError):
        build_connect_command("203.0.113.7", port)


@pytest.mark.parametrize("password", ["line\nbreak", "bell\x07", "x" * 200])
def test_invalid_password_rejected(password: str) -> None:
    with pytest.raises(CommandRejectedError):
        build_connect_command("203.0.113.7", 27016, password)


def test_quote_characters_are_escaped() -> None:
    command = build_connect_command("203.0.113.7", 27016, "it's; quit")
    assert command.startswith("password 'it'\"'\"'s; quit'; ")


def test_unknown_placeholder_rejected() -> None:
    with pytest.raises(CommandRejectedError, match="placeholder"):
        build_connect_command("203.0.113.7", 27016, template=CommandTemplate(connect="connect {target}"))
