"""Selection boundary between the ranked list and the process controller.

Rendering the list and reading the user's choice belong to the caller. A
selector only has to return an index into the ranked list, the
``RECONNECT_LAST`` sentinel, or None to cancel.
"""

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Final, Literal, Protocol, TypeAlias

from serverhop.models import HistoryEntry, ServerRecord

logger = logging.getLogger(__name__)


class _Sentinel(Enum):
    RECONNECT_LAST = "reconnect-last"

    def __repr__(self) -> str:
        return "RECONNECT_LAST"


RECONNECT_LAST: Final = _Sentinel.RECONNECT_LAST

Selection: TypeAlias = int | Literal[_Sentinel.RECONNECT_LAST] | None


class Selector(Protocol):
    """Chooses one server from a ranked list."""

    def select(self, ranked: Sequence[ServerRecord], last: HistoryEntry | None) -> Selection:
        """Return an index into ``ranked``, ``RECONNECT_LAST`` or None."""
        ...


def resolve_selection(
    selection: Selection,
    ranked: Sequence[ServerRecord],
    last: HistoryEntry | None,
) -> ServerRecord | None:
    """Map a selection to the record to join.

    Returns:
        The selected record, a record rebuilt from ``last`` for
        ``RECONNECT_LAST``, or None when nothing was selected

    Raises:
        IndexError: If the index is outside the ranked list

    """
    if selection is None:
        return None

    if selection is RECONNECT_LAST:
        if last is None:
            logger.info("Reconnect requested but no server has been joined yet")
            return None
        return last.to_record()

    if isinstance(selection, bool) or not 0 <= selection < len(ranked):
        msg = f"Selection {selection!r} out of range (0-{len(ranked) - 1})"
        raise IndexError(msg)
    return ranked[selection]
