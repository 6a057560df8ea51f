"""Tests for the favourites export."""

import json

import pytest

from serverhop.favourites import default_favourites_path, write_favourites


def test_write_favourites(tmp_path, record_factory) -> None:
    ranked = [record_factory(f"203.0.113.{i}", 27016) for i in range(5)] + [record_factory("2001:db8::1", 27016)]
    path = default_favourites_path(tmp_path)

    written = write_favourites(path, ranked, limit=3)

    assert written == 3
    assert path == tmp_path / "players2" / "favourites.json"
    assert json.loads(path.read_text()) == ["203.0.113.0:27016", "203.0.113.1:27016", "203.0.113.2:27016"]


def test_write_favourites_brackets_ipv6(tmp_path, record_factory) -> None:
    path = tmp_path / "favourites.json"
    write_favourites(path, [record_factory("2001:db8::1", 27016)], limit=10)
    assert json.loads(path.read_text()) == ["[2001:db8::1]:27016"]


def test_write_favourites_warns_at_cap(tmp_path, record_factory, caplog) -> None:
    write_favourites(tmp_path / "favourites.json", [record_factory()])
    assert "breaks with more than 100 favourites" in caplog.text


def test_write_favourites_rejects_negative_limit(tmp_path) -> None:
    with pytest.raises(ValueError, match="limit"):
        write_favourites(tmp_path / "favourites.json", [], limit=-1)
