"""
Archive Store — entries the operator moved out of the rolling log.

Owned explicitly: created once at startup and handed to whoever needs it.
Lives for the session; only clear() or remove_by_id() shrink it.
The archive and the log are disjoint by id.
"""
import threading
import logging
from typing import Optional

from gaswatch.models import ArchiveEntry

log = logging.getLogger("archive_store")


class ArchiveStore:

    def __init__(self):
        self._lock    = threading.RLock()
        self._entries: dict[str, ArchiveEntry] = {}

    def add(self, entry: ArchiveEntry, log_store) -> ArchiveEntry:
        """Add or replace by id. Refused while the id is still in log_store."""
        with self._lock:
            if log_store.get(entry.id) is not None:
                raise ValueError(f"Entry {entry.id} is still in the log")
            self._entries[entry.id] = entry
            return entry

    def archive_from_log(self, log_store, entry_id: str) -> Optional[ArchiveEntry]:
        """
        Move one log entry into the archive.
        Returns the new archive entry, or None if the id is not in the log.
        """
        with self._lock:
            entry = log_store.get(entry_id)
            if entry is None:
                log.info(f"Archive: {entry_id} not in log")
                return None
            archived = ArchiveEntry.from_log_entry(entry)
            log_store.remove_by_id(entry_id)
            self._entries[archived.id] = archived
            log.info(f"Archived {entry_id} (value={archived.value:g})")
            return archived

    def remove_by_id(self, entry_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(entry_id, None) is not None
        if removed:
            log.info(f"Archive entry deleted: {entry_id}")
        return removed

    def get(self, entry_id: str) -> Optional[ArchiveEntry]:
        with self._lock:
            return self._entries.get(entry_id)

    def list_all(self) -> list[ArchiveEntry]:
        """Newest first (by recorded time, then id)."""
        with self._lock:
            return sorted(self._entries.values(),
                          key=lambda e: (e.recorded_at, e.id), reverse=True)

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()
        log.info("Archive cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
