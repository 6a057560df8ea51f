"""Export ranked servers to the in-game favourites list."""

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from serverhop.models import ServerRecord, format_address

logger = logging.getLogger(__name__)

FAVOURITES_DIR = "players2"
FAVOURITES_FILE = "favourites.json"

# The in-game browser misbehaves above this many favourites
SERVER_CAP = 100


def default_favourites_path(game_dir: str | Path) -> Path:
    """Get the favourites file location inside a game directory."""
    return Path(game_dir) / FAVOURITES_DIR / FAVOURITES_FILE


def write_favourites(
    path: str | Path,
    ranked: Sequence[ServerRecord],
    limit: int = SERVER_CAP,
) -> int:
    """Write the best ``limit`` servers as a JSON list of ``"host:port"`` strings.

    Args:
        path: Favourites file to overwrite
        ranked: Servers, best first
        limit: Maximum number of entries

    Returns:
        Number of entries written

    """
    if limit < 0:
        msg = "limit cannot be negative"
        raise ValueError(msg)
    if limit >= SERVER_CAP:
        logger.warning(
            "The in-game server browser breaks with more than %d favourites (limit=%d)",
            SERVER_CAP,
            limit,
        )

    addresses = [format_address(record.host, record.port) for record in ranked[:limit]]

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(addresses), encoding="utf-8")

    logger.info("%s updated with %d entries", path.name, len(addresses))
    return len(addresses)
