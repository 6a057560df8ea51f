"""Serverhop - find live game servers and join them through the game console.

This package discovers servers from a directory service, probes them
concurrently, filters and ranks the live ones, and drives the game process
through a pseudo-terminal to join the chosen server. Joined servers are
remembered so the last one can be rejoined later.

Example usage:
    ```python
    import asyncio

    from serverhop import (
        ControllerOptions,
        FilterCriteria,
        ServerBrowser,
        ServerHopOptions,
    )

    async def main() -> None:
        options = ServerHopOptions(
            controller=ControllerOptions(executable="./h2m-mod.exe"),
        )
        criteria = FilterCriteria(min_population=4, max_latency_ms=120, exclude_protected=True)

        async with ServerBrowser(options) as browser:
            report = await browser.discover(criteria)
            print(report)
            for index, record in enumerate(report.ranked[:10]):
                print(f"{index:>2}  {record}")

            if not report.is_empty:
                attempt = await browser.join(report, 0)
                print(f"Result: {attempt}")

    if __name__ == "__main__":
        try:
            asyncio.run(main())
        except KeyboardInterrupt:
            print("\nExiting.")
    ```
"""

from serverhop.browser import DiscoveryReport, ServerBrowser
from serverhop.console import (
    AttemptPhase,
    CommandTemplate,
    ConnectionAttempt,
    ConsolePatterns,
    FailureClass,
    ProcessController,
)
from serverhop.discovery import MasterListFetcher, ServerProber
from serverhop.errors import ErrorKind, FetchError, ServerHopError
from serverhop.favourites import write_favourites
from serverhop.history import IdentityCache, identity_hash
from serverhop.models import FilterCriteria, HistoryEntry, Liveness, ServerRecord
from serverhop.options import ControllerOptions, RetryPolicy, ServerHopOptions
from serverhop.selector import RECONNECT_LAST, Selector, resolve_selection

__version__ = "0.1.0"

__all__ = [
    "RECONNECT_LAST",
    "AttemptPhase",
    "CommandTemplate",
    "ConnectionAttempt",
    "ConsolePatterns",
    "ControllerOptions",
    "DiscoveryReport",
    "ErrorKind",
    "FailureClass",
    "FetchError",
    "FilterCriteria",
    "HistoryEntry",
    "IdentityCache",
    "Liveness",
    "MasterListFetcher",
    "ProcessController",
    "RetryPolicy",
    "ServerBrowser",
    "ServerHopError",
    "ServerHopOptions",
    "ServerProber",
    "ServerRecord",
    "Selector",
    "identity_hash",
    "resolve_selection",
    "write_favourites",
]
