#!/usr/bin/env python3
"""Example usage of serverhop.

This script discovers live servers, prints the best matches and joins the one
you pick by typing into the game console through a pseudo-terminal. Entering
``r`` rejoins the last server you connected to.
"""

import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from serverhop import (
    RECONNECT_LAST,
    ControllerOptions,
    FilterCriteria,
    HistoryEntry,
    ServerBrowser,
    ServerHopOptions,
    ServerRecord,
)
from serverhop.selector import Selection
from serverhop.utils import clean_hostname

logger = logging.getLogger(__name__)

SHOWN = 20


class PromptSelector:
    """Reads the user's choice from standard input."""

    def select(self, ranked: Sequence[ServerRecord], last: HistoryEntry | None) -> Selection:
        """Print the list and ask for an index."""
        for index, record in enumerate(ranked[:SHOWN]):
            latency = f"{record.latency_ms:.0f}ms" if record.latency_ms is not None else "-"
            print(
                f"{index:>3}  {clean_hostname(record.name)[:40]:<40} "
                f"{record.population:>2}/{record.capacity:<2} {record.map_name:<16} {latency}"
            )
        if last is not None:
            print(f"  r  reconnect to {last.name or last.host} ({last.host}:{last.port})")

        choice = input("\nServer (empty to quit): ").strip().lower()
        if not choice:
            return None
        if choice == "r":
            return RECONNECT_LAST
        try:
            return int(choice)
        except ValueError:
            print(f"Not a number: {choice}")
            return None


async def main() -> None:
    """Run the serverhop example."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(), logging.FileHandler("serverhop.log")],
    )

    game_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path.cwd()
    options = ServerHopOptions(
        history_path=str(game_dir / "serverhop_history.json"),
        controller=ControllerOptions(
            executable=str(game_dir / "h2m-mod.exe"),
            cwd=str(game_dir),
            prompt_timeout=90.0,
        ),
    )
    criteria = FilterCriteria(min_population=1, max_latency_ms=150.0, exclude_protected=True)

    print("Serverhop Example")
    print(f"Game directory: {game_dir}")
    print("Press Ctrl+C to stop\n")

    async with ServerBrowser(options) as browser:
        report = await browser.discover(criteria)
        print(f"{report.total} servers listed, {report.alive} answered, {report.matched} match\n")

        selection = await asyncio.to_thread(PromptSelector().select, report.ranked, browser.cache.last())
        attempt = await browser.join(report, selection)
        if attempt is None:
            print("Nothing joined")
            return

        print(f"Result: {attempt}")
        if attempt.succeeded:
            print("Connected, press Ctrl+C to close the game")
            await asyncio.Event().wait()


def run_example() -> None:
    """Run the example using asyncio."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting...")
    except Exception as e:  # noqa: BLE001
        print(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run_example()
