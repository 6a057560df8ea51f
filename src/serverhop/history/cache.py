"""Persistent history of joined servers.

The cache maps identity hashes to history entries and remembers the most
recent successful connection. It is loaded lazily, updated only after a
connection succeeds, and flushed atomically to a JSON file.
"""

import contextlib
import json
import logging
import os
import signal
import tempfile
import threading
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime
from pathlib import Path
from types import FrameType
from typing import Any

from serverhop.errors import CacheCorruptionError
from serverhop.history.hashing import record_identity
from serverhop.models import HistoryEntry, ServerRecord

logger = logging.getLogger(__name__)

CACHE_VERSION = 1

# Signals converted to SystemExit while a persist() scope is active
FLUSH_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig
)


class IdentityCache:
    """History of joined servers keyed by identity hash.

    With persistence disabled the cache lives only in memory, which is what
    tests and one-shot tools substitute for the file-backed store.
    """

    def __init__(
        self,
        persist_path: str | Path | None = "history.json",
        *,
        enable_persistence: bool = True,
    ) -> None:
        """Initialize identity cache.

        Args:
            persist_path: Path of the JSON history file
            enable_persistence: Whether to read from and write to disk

        """
        self._persist_path = Path(persist_path) if persist_path is not None else None
        self._enable_persistence = enable_persistence and self._persist_path is not None
        self._entries: dict[str, HistoryEntry] = {}
        self._loaded = False
        self._dirty = False

    @property
    def persist_path(self) -> Path | None:
        """Get path of the backing file."""
        return self._persist_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unflushed changes."""
        return self._dirty

    @property
    def entries(self) -> Mapping[str, HistoryEntry]:
        """Get a read-only view of loaded entries."""
        self._ensure_loaded()
        return dict(self._entries)

    def load(self) -> dict[str, HistoryEntry]:
        """Load history from disk, replacing in-memory state.

        A missing file is an empty history. A corrupt or unreadable file is
        logged and treated as empty.

        Returns:
            Mapping of identity hash to history entry

        """
        self._loaded = True
        self._dirty = False

        if not self._enable_persistence or self._persist_path is None:
            return dict(self._entries)

        if not self._persist_path.exists():
            logger.debug("No history file at %s", self._persist_path)
            self._entries = {}
            return {}

        try:
            raw = self._persist_path.read_text(encoding="utf-8")
            self._entries = self._deserialize(json.loads(raw))
        except (OSError, ValueError, CacheCorruptionError) as e:
            logger.warning("Ignoring unreadable history file %s: %s", self._persist_path, e)
            self._entries = {}
        else:
            logger.info("Loaded %d history entries from %s", len(self._entries), self._persist_path)

        return dict(self._entries)

    def record(self, record: ServerRecord) -> HistoryEntry:
        """Upsert the history entry for a server that was just joined.

        Args:
            record: The server that was connected to

        Returns:
            The stored history entry

        """
        self._ensure_loaded()
        identity = record_identity(record)
        entry = HistoryEntry(
            identity=identity,
            host=record.host,
            port=record.port,
            last_connected=datetime.now(UTC),
            fingerprint=record.fingerprint,
            name=record.name or self._previous_name(identity),
        )
        self._entries[identity] = entry
        self._dirty = True
        logger.debug("Recorded history entry %s for %s:%d", identity[:12], record.host, record.port)
        return entry

    def last(self) -> HistoryEntry | None:
        """Get the most recently connected entry."""
        self._ensure_loaded()
        if not self._entries:
            return None
        return max(self._entries.values(), key=lambda entry: entry.last_connected)

    def flush(self) -> None:
        """Write history to disk atomically if there are unsaved changes."""
        if not self._dirty:
            return
        if not self._enable_persistence or self._persist_path is None:
            self._dirty = False
            return

        data = self._serialize(self._entries)
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._persist_path.name}.", dir=self._persist_path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            Path(tmp_name).replace(self._persist_path)
        except BaseException:
            with contextlib.suppress(OSError):
                Path(tmp_name).unlink()
            raise

        self._dirty = False
        logger.info("Saved %d history entries to %s", len(self._entries), self._persist_path)

    @contextlib.contextmanager
    def persist(self) -> Iterator["IdentityCache"]:
        """Hold the backing store for a scope and flush it on every exit path.

        While the scope is active on the main thread, termination signals are
        turned into ``SystemExit`` so the flush in ``finally`` still runs.
        """
        self._ensure_loaded()
        previous = self._install_signal_handlers()
        try:
            yield self
        finally:
            try:
                self.flush()
            except OSError:
                logger.exception("Failed to save history to %s", self._persist_path)
            finally:
                self._restore_signal_handlers(previous)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _previous_name(self, identity: str) -> str:
        previous = self._entries.get(identity)
        return previous.name if previous else ""

    @staticmethod
    def _install_signal_handlers() -> dict[int, Any]:
        if threading.current_thread() is not threading.main_thread():
            return {}

        def _exit(signum: int, _frame: FrameType | None) -> None:
            msg = f"Received signal {signum}"
            raise SystemExit(msg)

        previous: dict[int, Any] = {}
        for sig in FLUSH_SIGNALS:
            try:
                previous[sig] = signal.signal(sig, _exit)
            except (ValueError, OSError):
                logger.debug("Cannot install handler for signal %s", sig)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict[int, Any]) -> None:
        for sig, handler in previous.items():
            with contextlib.suppress(ValueError, OSError, TypeError):
                signal.signal(sig, handler)

    @staticmethod
    def _serialize(entries: Mapping[str, HistoryEntry]) -> dict[str, Any]:
        return {
            "version": CACHE_VERSION,
            "entries": {identity: entry.to_dict() for identity, entry in entries.items()},
        }

    @staticmethod
    def _deserialize(data: Any) -> dict[str, HistoryEntry]:
        if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
            msg = "History file has unexpected structure"
            raise CacheCorruptionError(msg)
        if data.get("version") != CACHE_VERSION:
            msg = f"Unsupported history version: {data.get('version')}"
            raise CacheCorruptionError(msg)

        entries: dict[str, HistoryEntry] = {}
        for identity, raw_entry in data["entries"].items():
            if not isinstance(raw_entry, dict):
                msg = f"History entry {identity} is not an object"
                raise CacheCorruptionError(msg)
            try:
                entries[identity] = HistoryEntry.from_dict(identity, raw_entry)
            except ValueError as e:
                raise CacheCorruptionError(str(e)) from e
        return entries

    def __contains__(self, identity: object) -> bool:
        """Check if an identity hash is in the history."""
        self._ensure_loaded()
        return identity in self._entries

    def __len__(self) -> int:
        """Return number of history entries."""
        self._ensure_loaded()
        return len(self._entries)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"IdentityCache("
            f"path={str(self._persist_path)!r}, "
            f"entries={len(self._entries)}, "
            f"persistence={self._enable_persistence})"
        )
