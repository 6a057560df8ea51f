"""Directory service client.

Fetches the list of candidate servers from the master listing service. The
listing groups servers under the hosting instance that reports them:

    [{"ip_address": "203.0.113.7", "webfront_url": "http://203.0.113.7:1624",
      "servers": [{"ip": "localhost", "port": 27016, "hostname": "^1Best TDM",
                   "game": "H2M", "clientnum": 12, "maxclientnum": 18}]}]

A payload that does not match this shape is rejected as a whole.
"""

import ipaddress
import logging
from typing import Any
from urllib.parse import urlsplit

import aiohttp

from serverhop.errors import ErrorKind, FetchError
from serverhop.models import Candidate, validate_port

logger = logging.getLogger(__name__)

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "0.0.0.0"})


class MasterListFetcher:
    """Fetches candidate servers from the directory service."""

    def __init__(
        self,
        url: str,
        *,
        game: str | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            url: Directory endpoint
            game: Only keep servers for this game id, None keeps all
            session: Optional shared HTTP session, a new one is used per fetch otherwise

        """
        self._url = url
        self._game = game
        self._session = session

    @property
    def url(self) -> str:
        """Get directory endpoint."""
        return self._url

    async def fetch(self, timeout: float = 10.0) -> list[Candidate]:
        """Fetch the candidate list.

        Args:
            timeout: Total timeout in seconds for the request

        Returns:
            Candidates listed by the directory

        Raises:
            FetchError: On timeout, non-success status, connection failure or malformed payload

        """
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        try:
            if self._session is not None:
                payload = await self._request(self._session, client_timeout)
            else:
                async with aiohttp.ClientSession(timeout=client_timeout) as session:
                    payload = await self._request(session, client_timeout)
        except TimeoutError as e:
            msg = f"Directory request to {self._url} timed out after {timeout:.1f}s"
            raise FetchError(msg, ErrorKind.FETCH_TIMEOUT) from e
        except aiohttp.ClientError as e:
            msg = f"Directory request to {self._url} failed: {e}"
            raise FetchError(msg, ErrorKind.NETWORK) from e

        candidates = parse_master_payload(payload, game=self._game)
        logger.info("Directory listed %d candidate servers", len(candidates))
        return candidates

    async def _request(self, session: aiohttp.ClientSession, timeout: aiohttp.ClientTimeout) -> Any:
        async with session.get(self._url, timeout=timeout) as response:
            if response.status != 200:
                msg = f"Directory returned HTTP {response.status} for {self._url}"
                raise FetchError(msg, ErrorKind.FETCH_STATUS)
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                msg = f"Directory response is not valid JSON: {e}"
                raise FetchError(msg, ErrorKind.FETCH_MALFORMED) from e

    def __repr__(self) -> str:
        """Return string representation."""
        return f"MasterListFetcher(url='{self._url}', game={self._game!r})"


def parse_master_payload(payload: Any, *, game: str | None = None) -> list[Candidate]:
    """Turn a directory payload into candidates.

    Args:
        payload: Decoded JSON payload
        game: Only keep servers for this game id, None keeps all

    Returns:
        Candidates in listing order

    Raises:
        FetchError: If the payload does not match the expected schema

    """
    if not isinstance(payload, list):
        msg = f"Directory payload must be a list, got {type(payload).__name__}"
        raise FetchError(msg, ErrorKind.FETCH_MALFORMED)

    candidates: list[Candidate] = []
    for host_index, host in enumerate(payload):
        if not isinstance(host, dict) or not isinstance(host.get("servers"), list):
            msg = f"Directory host #{host_index} has no server list"
            raise FetchError(msg, ErrorKind.FETCH_MALFORMED)

        for server in host["servers"]:
            candidate = _parse_server(server, host, host_index)
            if game is not None and candidate.game != game:
                continue
            candidates.append(candidate)

    return candidates


def _parse_server(server: Any, host: dict[str, Any], host_index: int) -> Candidate:
    if not isinstance(server, dict):
        msg = f"Directory host #{host_index} lists a non-object server"
        raise FetchError(msg, ErrorKind.FETCH_MALFORMED)

    ip = server.get("ip")
    port = server.get("port")
    hostname = server.get("hostname", "")
    if not isinstance(ip, str) or not isinstance(port, int) or not isinstance(hostname, str):
        msg = f"Directory host #{host_index} lists a server with invalid ip/port/hostname"
        raise FetchError(msg, ErrorKind.FETCH_MALFORMED)
    try:
        validate_port(port)
    except ValueError as e:
        raise FetchError(str(e), ErrorKind.FETCH_MALFORMED) from e

    if ip.strip().lower() in LOCAL_HOSTS:
        public = resolve_hosting_address(host)
        if public is None:
            logger.debug("Keeping local address for %s, host has no public address", hostname)
        else:
            ip = public

    server_id = server.get("id")
    return Candidate(
        host=ip,
        port=port,
        name=hostname,
        game=str(server.get("game", "")),
        fingerprint=str(server_id) if server_id not in (None, "") else None,
        listed_population=_int_or_zero(server.get("clientnum")),
        listed_capacity=_int_or_zero(server.get("maxclientnum")),
    )


def resolve_hosting_address(host: dict[str, Any]) -> str | None:
    """Find the public address of the instance hosting a server.

    Servers that report ``localhost`` are reachable through the address of
    their hosting instance. The instance's ``ip_address`` is tried first, then
    the host part of its ``webfront_url`` (which also carries IPv6 addresses).

    Returns:
        IP literal or host name, or None if neither source is usable

    """
    for raw in (host.get("ip_address"), _webfront_host(host.get("webfront_url"))):
        if not isinstance(raw, str):
            continue
        value = raw.strip().strip("[]")
        if not value:
            continue
        try:
            address = ipaddress.ip_address(value)
        except ValueError:
            if value.lower() not in LOCAL_HOSTS:
                return value
            continue
        if not address.is_unspecified and not address.is_loopback:
            return address.compressed
    return None


def _webfront_host(url: Any) -> str | None:
    if not isinstance(url, str) or "//" not in url:
        return None
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def _int_or_zero(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0
