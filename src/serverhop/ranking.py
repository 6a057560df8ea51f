"""Filter and rank probed servers.

Everything here is pure: records and criteria go in, an ordered list comes
out, nothing is mutated and no I/O happens.
"""

from typing import TypeAlias
import logging
import math
from collections.abc import Container, Iterable

from serverhop.history import record_identity
from serverhop.models import FilterCriteria, ServerRecord
from serverhop.utils import clean_hostname, lowercase_terms

logger = logging.getLogger(__name__)

RankKey: TypeAlias = tuple[int, float, str, int]


def rank_key(record: ServerRecord) -> RankKey:
    """Sort key: population desc, latency asc, then address.

    Records without a measured latency sort after every measured one at the
    same population.
    """
    latency = record.latency_ms if record.latency_ms is not None else math.inf
    return -record.population, latency, record.host, record.port


def matches(record: ServerRecord, criteria: FilterCriteria) -> bool:
    """Check a record against the hard criteria.

    Liveness and previously-joined exclusion are not part of this check.
    """
    if criteria.min_population is not None and record.population < criteria.min_population:
        return False
    if criteria.max_population is not None and record.population > criteria.max_population:
        return False
    if criteria.max_latency_ms is not None and (
        record.latency_ms is None or record.latency_ms > criteria.max_latency_ms
    ):
        return False
    if criteria.exclude_protected and record.protected:
        return False

    map_name = record.map_name.lower()
    if criteria.include_maps and map_name not in {m.lower() for m in criteria.include_maps}:
        return False
    if criteria.exclude_maps and map_name in {m.lower() for m in criteria.exclude_maps}:
        return False

    if criteria.include_names or criteria.exclude_names:
        name = clean_hostname(record.name)
        include = lowercase_terms(criteria.include_names)
        if include and not any(term in name for term in include):
            return False
        if any(term in name for term in lowercase_terms(criteria.exclude_names)):
            return False

    if criteria.max_team_size is not None and record.capacity > criteria.max_team_size * 2:
        return False

    return True


def was_joined(record: ServerRecord, history: Container[str]) -> bool:
    """Check if the record's identity hash is in the history."""
    return record_identity(record) in history


def apply(
    records: Iterable[ServerRecord],
    criteria: FilterCriteria,
    history: Container[str] = frozenset(),
) -> list[ServerRecord]:
    """Filter and rank records.

    Args:
        records: Probed records, in any order
        criteria: Filter criteria
        history: Identity hashes of joined servers, already in memory

    Returns:
        Matching live records, best first. May be empty.

    """
    records = list(records)
    selected = [r for r in records if r.is_alive and matches(r, criteria)]
    if criteria.exclude_joined:
        selected = [r for r in selected if not was_joined(r, history)]

    selected.sort(key=rank_key)
    if criteria.limit is not None:
        selected = selected[: criteria.limit]

    logger.debug("Filtered %d records down to %d", len(records), len(selected))
    return selected
