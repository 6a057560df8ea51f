#!/usr/bin/env python3
"""Export the best live servers to the in-game favourites list.

The in-game browser only reliably shows favourites, so filling the list with
the busiest nearby servers is a quick way to find a game without joining
from the console.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from serverhop import FilterCriteria, ServerBrowser, ServerHopOptions, write_favourites
from serverhop.favourites import default_favourites_path

logger = logging.getLogger(__name__)


async def main() -> None:
    """Discover servers and write favourites."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    game_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path.cwd()
    criteria = FilterCriteria(
        min_population=2,
        max_latency_ms=120.0,
        exclude_names=("train", "bot"),
        max_team_size=9,
        limit=50,
    )

    browser = ServerBrowser(ServerHopOptions(enable_persistence=False))
    report = await browser.discover(criteria)
    print(f"{report.matched} servers match the current query")

    path = default_favourites_path(game_dir)
    count = write_favourites(path, report.ranked, limit=criteria.limit or 100)
    print(f"{path} updated with {count} entries")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting...")
