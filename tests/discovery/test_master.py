"""Tests for the directory service client."""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeAlias

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from serverhop.discovery import MasterListFetcher, parse_master_payload, resolve_hosting_address
from serverhop.errors import ErrorKind, FetchError

PAYLOAD = [
    {
        "ip_address": "203.0.113.7",
        "webfront_url": "http://203.0.113.7:1624",
        "servers": [
            {"ip": "localhost", "port": 27016, "hostname": "^1Best TDM", "game": "H2M", "clientnum": 12, "maxclientnum": 18, "id": 1234},
            {"ip": "198.51.100.2", "port": 27017, "hostname": "Other Game", "game": "IW4", "clientnum": 3, "maxclientnum": 18},
        ],
    },
    {
        "ip_address": "0.0.0.0",
        "webfront_url": "http://[2001:db8::5]:1624",
        "servers": [
            {"ip": "127.0.0.1", "port": 27018, "hostname": "v6 host", "game": "H2M"},
        ],
    },
]

Handler: TypeAlias = Callable[[web.Request], Any]


@pytest_asyncio.fixture
async def directory() -> AsyncIterator[Callable[[Handler], Any]]:
    """Fixture starting a local directory service with a custom handler."""
    servers: list[TestServer] = []

    async def _start(handler: Handler) -> str:
        app = web.Application()
        app.router.add_get("/instance", handler)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return str(server.make_url("/instance"))

    yield _start

    for server in servers:
        await server.close()


@pytest.mark.asyncio
async def test_fetch_filters_game_and_rewrites_localhost(directory) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.json_response(PAYLOAD)

    url = await directory(handler)
    candidates = await MasterListFetcher(url, game="H2M").fetch(timeout=5.0)

    assert [(c.host, c.port) for c in candidates] == [("203.0.113.7", 27016), ("2001:db8::5", 27018)]
    first = candidates[0]
    assert first.name == "^1Best TDM"
    assert first.fingerprint == "1234"
    assert first.listed_population == 12
    assert first.listed_capacity == 18
    assert candidates[1].fingerprint is None


@pytest.mark.asyncio
async def test_fetch_without_game_keeps_all(directory) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.json_response(PAYLOAD)

    url = await directory(handler)
    candidates = await MasterListFetcher(url).fetch(timeout=5.0)

    assert len(candidates) == 3


@pytest.mark.asyncio
async def test_non_success_status(directory) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(status=503, text="maintenance")

    url = await directory(handler)
    with pytest.raises(FetchError) as exc_info:
        await MasterListFetcher(url).fetch(timeout=5.0)
    assert exc_info.value.kind is ErrorKind.FETCH_STATUS


@pytest.mark.asyncio
async def test_invalid_json(directory) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(text="<html>not json</html>", content_type="text/html")

    url = await directory(handler)
    with pytest.raises(FetchError) as exc_info:
        await MasterListFetcher(url).fetch(timeout=5.0)
    assert exc_info.value.kind is ErrorKind.FETCH_MALFORMED


@pytest.mark.asyncio
async def test_timeout(directory) -> None:
    async def handler(_request: web.Request) -> web.Response:
        await asyncio.sleep(2)
        return web.json_response(PAYLOAD)

    url = await directory(handler)
    with pytest.raises(FetchError) as exc_info:
        await MasterListFetcher(url).fetch(timeout=0.2)
    assert exc_info.value.kind is ErrorKind.FETCH_TIMEOUT


@pytest.mark.asyncio
async def test_connection_refused(unused_tcp_port: int) -> None:
    fetcher = MasterListFetcher(f"http://127.0.0.1:{unused_tcp_port}/instance")
    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch(timeout=2.0)
    assert exc_info.value.kind is ErrorKind.NETWORK


@pytest.mark.parametrize(
    "payload",
    [
        {"servers": []},
        [{"ip_address": "203.0.113.7"}],
        [{"servers": ["not a server"]}],
        [{"servers": [{"ip": "203.0.113.7", "port": "27016", "hostname": "x"}]}],
        [{"servers": [{"ip": "203.0.113.7", "port": 70000, "hostname": "x"}]}],
    ],
)
def test_schema_mismatch_rejects_whole_payload(payload) -> None:
    with pytest.raises(FetchError) as exc_info:
        parse_master_payload(payload)
    assert exc_info.value.kind is ErrorKind.FETCH_MALFORMED


def test_localhost_kept_without_public_address() -> None:
    payload = [{"ip_address": "127.0.0.1", "servers": [{"ip": "localhost", "port": 27016, "hostname": "x"}]}]
    assert parse_master_payload(payload)[0].host == "localhost"


@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ({"ip_address": "203.0.113.7"}, "203.0.113.7"),
        ({"ip_address": "0.0.0.0", "webfront_url": "http://198.51.100.9:1624"}, "198.51.100.9"),
        ({"ip_address": "", "webfront_url": "http://[2001:db8::5]:1624/"}, "2001:db8::5"),
        ({"ip_address": "127.0.0.1", "webfront_url": "http://localhost:1624"}, None),
        ({}, None),
    ],
)
def test_resolve_hosting_address(host, expected) -> None:
    assert resolve_hosting_address(host) == expected
