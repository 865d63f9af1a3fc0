"""
Local Log Store — bounded, newest-first list of high-reading events.

Every mutation is a full read-modify-write of one storage key; entry
counts are small (max_entries, default 100) so this stays cheap.
Single writer only: concurrent sessions on the same file lose updates.

If the storage backend fails, the failure is logged and the in-memory
list stays authoritative until the next successful write.
"""
import threading
import logging
import dataclasses
from typing import Iterable, Optional

from gaswatch.models import LogEntry
from gaswatch.storage import StorageError

log = logging.getLogger("log_store")


def _newest_first(entries: list[LogEntry]) -> list[LogEntry]:
    return sorted(entries, key=lambda e: e.recorded_at, reverse=True)


class LocalLogStore:

    def __init__(self, storage, cfg: dict):
        self._storage     = storage
        self._key         = cfg.get("log_key", "gas_detection_logs")
        self._max_entries = int(cfg.get("max_entries", 100))
        self._lock        = threading.RLock()
        self._dirty       = False   # last write failed, storage is behind
        self._cache: list[LogEntry] = []
        self._cache = self._read()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    # ── Persistence ───────────────────────────────────────────

    def _read(self) -> list[LogEntry]:
        if self._dirty:
            return list(self._cache)
        try:
            raw = self._storage.get(self._key)
        except StorageError as e:
            log.warning(f"Log read failed, using in-memory view: {e}")
            return list(self._cache)
        if not isinstance(raw, list):
            return []
        entries = []
        for item in raw:
            try:
                entries.append(LogEntry.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                log.warning(f"Skipping malformed log entry {item!r}: {e}")
        return _newest_first(entries)

    def _write(self, entries: list[LogEntry]):
        entries = _newest_first(entries)[:self._max_entries]
        self._cache = entries
        try:
            self._storage.set(self._key, [e.to_dict() for e in entries])
            self._dirty = False
        except StorageError as e:
            self._dirty = True
            log.error(f"Log write failed ({len(entries)} entries kept in memory): {e}")

    # ── Contract ──────────────────────────────────────────────

    def append(self, entry: LogEntry, reserved_ids: Iterable[str] = ()) -> LogEntry:
        """
        Add entry; oldest entries beyond the bound drop.
        The id is made unique against the log and against reserved_ids
        (the archive's ids), so the two never share an id.
        """
        with self._lock:
            entries = self._read()
            taken   = {e.id for e in entries} | set(reserved_ids)
            if entry.id in taken:
                n = 1
                while f"{entry.id}-{n}" in taken:
                    n += 1
                entry = dataclasses.replace(entry, id=f"{entry.id}-{n}")
            self._write([entry, *entries])
            log.info(f"Log entry added: {entry.id} max={entry.max:g}")
            return entry

    def remove_by_id(self, entry_id: str) -> bool:
        with self._lock:
            entries = self._read()
            kept    = [e for e in entries if e.id != entry_id]
            if len(kept) == len(entries):
                return False
            self._write(kept)
            log.info(f"Log entry removed: {entry_id}")
            return True

    def get(self, entry_id: str) -> Optional[LogEntry]:
        with self._lock:
            for e in self._read():
                if e.id == entry_id:
                    return e
            return None

    def list_all(self) -> list[LogEntry]:
        """All entries, newest first."""
        with self._lock:
            self._cache = self._read()
            return list(self._cache)

    def latest(self) -> Optional[LogEntry]:
        entries = self.list_all()
        return entries[0] if entries else None

    def ids(self) -> set[str]:
        return {e.id for e in self.list_all()}

    def clear(self):
        with self._lock:
            self._write([])
            log.info("All log entries cleared")

    def __len__(self) -> int:
        return len(self.list_all())
