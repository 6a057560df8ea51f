"""Connect command construction.

The game's console input line behaves like a shell command line, so every
value substituted into a command template is validated and quoted first.
Anything that cannot be made safe is rejected before a byte reaches the child.
"""

import ipaddress
import re
import shlex
from dataclasses import dataclass

from serverhop.errors import CommandRejectedError
from serverhop.models import format_address, validate_port

HOSTNAME_REGEX = re.compile(
    r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(?:\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.?$"
)

# C0 controls, DEL and C1 controls
CONTROL_CHARS_REGEX = re.compile(r"[\x00-\x1f\x7f-\x9f]")

MAX_PASSWORD_LENGTH = 128


@dataclass(frozen=True)
class CommandTemplate:
    """Grammar of the console commands sent to the game.

    ``connect`` receives ``{address}``; ``password`` receives ``{password}``
    and is prepended with ``separator`` when a password is supplied.
    """

    connect: str = "connect {address}"
    password: str = "password {password}"
    separator: str = "; "


def validate_host(host: str) -> str:
    """Validate a host name or IP literal.

    Raises:
        CommandRejectedError: If the host is not a plain host name or IP

    """
    candidate = host.strip().strip("[]")
    if not candidate:
        msg = "Server host is empty"
        raise CommandRejectedError(msg)

    try:
        return ipaddress.ip_address(candidate).compressed
    except ValueError:
        pass

    if not HOSTNAME_REGEX.match(candidate):
        msg = f"Server host is not a valid host name: {host!r}"
        raise CommandRejectedError(msg)
    return candidate


def validate_password(password: str) -> str:
    """Validate a server password.

    Raises:
        CommandRejectedError: If the password contains control characters or is too long

    """
    if CONTROL_CHARS_REGEX.search(password):
        msg = "Password contains control characters"
        raise CommandRejectedError(msg)
    if len(password) > MAX_PASSWORD_LENGTH:
        msg = f"Password longer than {MAX_PASSWORD_LENGTH} characters"
        raise CommandRejectedError(msg)
    return password


def build_connect_command(
    host: str,
    port: int,
    password: str | None = None,
    template: CommandTemplate | None = None,
) -> str:
    """Build the single console line that joins a server.

    Args:
        host: Server host or IP
        port: Server port
        password: Optional server password
        template: Command grammar, defaults to ``CommandTemplate()``

    Returns:
        The command line, without trailing newline

    Raises:
        CommandRejectedError: If any input cannot be safely quoted

    """
    template = template or CommandTemplate()

    try:
        validate_port(port)
    except (ValueError, TypeError) as e:
        raise CommandRejectedError(str(e)) from e

    address = shlex.quote(format_address(validate_host(host), port))

    try:
        command = template.connect.format(address=address)
        if password:
            quoted = shlex.quote(validate_password(password))
            command = template.password.format(password=quoted) + template.separator + command
    except (KeyError, IndexError) as e:
        msg = f"Command template has an unknown placeholder: {e}"
        raise CommandRejectedError(msg) from e

    if CONTROL_CHARS_REGEX.search(command):
        msg = "Command contains control characters"
        raise CommandRejectedError(msg)
    return command
