"""Tests for the selection boundary."""

from datetime import UTC, datetime

import pytest

from serverhop.models import HistoryEntry
from serverhop.selector import RECONNECT_LAST, resolve_selection

LAST = HistoryEntry(
    identity="abc",
    host="198.51.100.4",
    port=27016,
    last_connected=datetime(2024, 5, 1, tzinfo=UTC),
    name="Last One",
)


def test_index_selects_record(record_factory) -> None:
    ranked = [record_factory("203.0.113.1"), record_factory("203.0.113.2")]
    assert resolve_selection(1, ranked, None) is ranked[1]


def test_reconnect_last_rebuilds_record(record_factory) -> None:
    record = resolve_selection(RECONNECT_LAST, [record_factory()], LAST)
    assert record is not None
    assert record.address == ("198.51.100.4", 27016)
    assert record.name == "Last One"


def test_reconnect_last_without_history() -> None:
    assert resolve_selection(RECONNECT_LAST, [], None) is None


def test_none_selects_nothing(record_factory) -> None:
    assert resolve_selection(None, [record_factory()], LAST) is None


@pytest.mark.parametrize("selection", [-1, 2, True])
def test_out_of_range_index(record_factory, selection) -> None:
    ranked = [record_factory("203.0.113.1"), record_factory("203.0.113.2")]
    with pytest.raises(IndexError):
        resolve_selection(selection, ranked, None)
