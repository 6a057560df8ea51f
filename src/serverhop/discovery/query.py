"""Out-of-band UDP server query.

Servers answer a ``getinfo <challenge>`` packet with an ``infoResponse``
carrying a backslash separated info-string:

    \\xff\\xff\\xff\\xffinfoResponse\\n\\challenge\\abc\\hostname\\My Server\\clients\\4...

The challenge is echoed back and must match the one that was sent.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field

from serverhop.errors import QueryError

logger = logging.getLogger(__name__)

OOB_PREFIX = b"\xff\xff\xff\xff"
GETINFO = b"getinfo"
INFO_RESPONSE = b"infoResponse"
MAX_DATAGRAM = 4096


def build_getinfo(challenge: str) -> bytes:
    """Build a getinfo request packet."""
    return OOB_PREFIX + GETINFO + b" " + challenge.encode("ascii")


def parse_info_string(text: str) -> dict[str, str]:
    """Parse a ``\\key\\value\\key\\value`` info-string.

    A trailing key without a value is dropped.
    """
    parts = text.strip().lstrip("\\").split("\\")
    return {parts[i]: parts[i + 1] for i in range(0, len(parts) - 1, 2) if parts[i]}


def parse_info_response(data: bytes) -> dict[str, str]:
    """Parse an infoResponse packet into its info dict.

    Raises:
        QueryError: If the packet is not an infoResponse

    """
    if not data.startswith(OOB_PREFIX):
        msg = "Response is missing the out-of-band prefix"
        raise QueryError(msg)

    body = data[len(OOB_PREFIX) :]
    header, _, payload = body.partition(b"\n")
    if header.strip() != INFO_RESPONSE:
        msg = f"Unexpected response type: {header[:32]!r}"
        raise QueryError(msg)

    return parse_info_string(payload.decode("utf-8", errors="replace"))


@dataclass
class InfoResult:
    """Answer to a getinfo query."""

    host: str
    port: int
    info: dict[str, str] = field(default_factory=dict)
    latency_ms: float = 0.0

    def get_int(self, key: str, default: int = 0) -> int:
        """Get an integer info value, ``default`` if missing or malformed."""
        try:
            return int(self.info.get(key, default))
        except ValueError:
            return default

    def get_flag(self, *keys: str) -> bool:
        """Check whether any of the keys holds a truthy flag."""
        return any(self.info.get(key, "0").strip() not in ("", "0") for key in keys)


class _QueryProtocol(asyncio.DatagramProtocol):
    def __init__(self, request: bytes) -> None:
        self._request = request
        self.response: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self.sent_at = 0.0

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.sent_at = time.perf_counter()
        transport.sendto(self._request)  # type: ignore[attr-defined]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.response.done():
            self.response.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.response.done():
            if exc is None:
                self.response.cancel()
            else:
                self.response.set_exception(exc)


async def query_info(host: str, port: int, timeout: float = 2.0) -> InfoResult:
    """Query a server for its info-string.

    Args:
        host: Server host
        port: Server port
        timeout: Seconds to wait for the answer

    Returns:
        Parsed info and round-trip latency

    Raises:
        QueryError: On a malformed answer, challenge mismatch or socket error
        TimeoutError: If no answer arrives within ``timeout``

    """
    loop = asyncio.get_running_loop()
    challenge = secrets.token_hex(4)

    try:
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: _QueryProtocol(build_getinfo(challenge)),
            remote_addr=(host, port),
        )
    except OSError as e:
        msg = f"Cannot query {host}:{port}: {e}"
        raise QueryError(msg) from e

    try:
        data = await asyncio.wait_for(protocol.response, timeout)
        latency_ms = (time.perf_counter() - protocol.sent_at) * 1000.0
    except OSError as e:
        msg = f"Query to {host}:{port} failed: {e}"
        raise QueryError(msg) from e
    finally:
        transport.close()

    info = parse_info_response(data)
    if info.get("challenge") != challenge:
        msg = f"Challenge mismatch from {host}:{port}"
        raise QueryError(msg)

    logger.debug("Queried %s:%d in %.1fms", host, port, latency_ms)
    return InfoResult(host=host, port=port, info=info, latency_ms=latency_ms)
