"""
Remote Client — the device's field layout on top of a remote store.

Field names are a contract with the board firmware:
  gas1, gas2, gas3      live readings
  status/alarmOn        device alarm flag (optional)
  maxGas                device running max
  resetFlag/reset       reset request
  readings              history
  alarms, archives      legacy event logs

Transports block, so every call runs in a worker thread; reads that
belong together are gathered concurrently.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from gaswatch.models import (ArchiveEntry, Reading, SensorTriple, coerce_bool,
                             coerce_gas, format_date_time)
from gaswatch.remote.base import BaseRemoteStore

log = logging.getLogger("remote_client")

GAS_FIELDS    = ("gas1", "gas2", "gas3")
STATUS_PATH   = "status"
MAX_GAS_PATH  = "maxGas"
RESET_PATH    = "resetFlag/reset"
READINGS_PATH = "readings"
ALARMS_PATH   = "alarms"
ARCHIVES_PATH = "archives"


@dataclass
class ResetResult:
    """Per-field outcome of the reset batch."""
    fields: dict[str, bool] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return any(self.fields.values())

    @property
    def failed(self) -> list[str]:
        return [p for p, ok in self.fields.items() if not ok]


def _normalize_ts(value: Any) -> Optional[float]:
    """Seconds since epoch; values that look like milliseconds are scaled."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    ts = float(value)
    if ts > 1e12:
        ts /= 1000.0
    return ts


def _records(raw: Any) -> list[tuple[str, Any]]:
    """Firebase returns maps, or lists when keys are small integers."""
    if isinstance(raw, dict):
        return list(raw.items())
    if isinstance(raw, list):
        return [(str(i), v) for i, v in enumerate(raw) if v is not None]
    return []


def rows_from_readings(raw: Any, limit: int,
                       now: Optional[float] = None) -> list[Reading]:
    """
    Convert a /readings payload to rows, newest first.
    Records without a timestamp are stamped 'now' and sort first.
    """
    now = now if now is not None else time.time()
    ordered = []
    for idx, (key, rec) in enumerate(_records(raw)):
        rec = rec if isinstance(rec, dict) else {}
        ts  = _normalize_ts(rec.get("timestamp"))
        if ts is None:
            ts = _normalize_ts(rec.get("ts"))
        date, hhmm = format_date_time(ts if ts is not None else now)
        row = Reading(
            id   = str(int(ts)) if ts is not None else f"row-{idx}",
            date = date,
            time = hhmm,
            gas1 = coerce_gas(rec.get("gas1")),
            gas2 = coerce_gas(rec.get("gas2")),
            gas3 = coerce_gas(rec.get("gas3")),
            ts   = ts,
        )
        order = ts if ts is not None else float("inf")
        ordered.append((order, -idx, row))
    ordered.sort(key=lambda t: (t[0], t[1]), reverse=True)
    return [row for _, _, row in ordered][:limit]


def _split_iso(ts: Any) -> tuple[str, str]:
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return format_date_time(_normalize_ts(ts))
    if not ts:
        return "—", "—"
    date, _, hhmm = str(ts).partition("T")
    return date or "—", (hhmm or "—").replace("Z", "")


def event_from_record(entry_id: str, rec: Any) -> ArchiveEntry:
    """Legacy /alarms and /archives record → ArchiveEntry."""
    rec = rec if isinstance(rec, dict) else {}
    date, hhmm = _split_iso(rec.get("timestamp"))
    return ArchiveEntry(
        id    = str(entry_id),
        date  = date,
        time  = hhmm,
        value = coerce_gas(rec.get("value")),
    )


class RemoteClient:

    def __init__(self, store: BaseRemoteStore, readings_cfg: Optional[dict] = None):
        self._store = store
        self._readings_limit = int((readings_cfg or {}).get("limit", 50))

    @property
    def store(self) -> BaseRemoteStore:
        return self._store

    async def _read(self, path: str, params: Optional[dict] = None) -> Any:
        return await asyncio.to_thread(self._store.read, path, params)

    async def _write(self, path: str, value: Any) -> bool:
        return await asyncio.to_thread(self._store.write, path, value)

    # ── Live values ───────────────────────────────────────────

    async def get_latest(self) -> SensorTriple:
        g1, g2, g3 = await asyncio.gather(*(self._read(f) for f in GAS_FIELDS))
        return SensorTriple.from_raw(g1, g2, g3)

    async def get_alarm_inputs(self) -> tuple[Optional[bool], Any]:
        """(status/alarmOn if a real boolean, raw maxGas)."""
        status, max_gas = await asyncio.gather(
            self._read(STATUS_PATH), self._read(MAX_GAS_PATH))
        flag = coerce_bool(status.get("alarmOn")) if isinstance(status, dict) else None
        return flag, max_gas

    async def get_alarm_status(self, detector, triple: Optional[SensorTriple] = None):
        flag, max_gas = await self.get_alarm_inputs()
        return detector.alarm_state(flag, max_gas, triple)

    # ── Reset ─────────────────────────────────────────────────

    async def send_reset(self) -> ResetResult:
        """
        Independent writes: reset flag, alarm-off status, zeroed running max.
        Succeeds if any one lands. No retry.
        """
        batch = {
            RESET_PATH:       True,
            "status/alarmOn": False,
            MAX_GAS_PATH:     0,
        }
        outcomes = await asyncio.gather(
            *(self._write(p, v) for p, v in batch.items()),
            return_exceptions=True,
        )
        result = ResetResult()
        for path, ok in zip(batch, outcomes):
            if isinstance(ok, BaseException):
                log.warning(f"Reset write /{path} raised: {ok}")
                ok = False
            result.fields[path] = bool(ok)
            if not ok:
                log.warning(f"Reset write /{path} failed")
        log.info(f"Reset: {len(batch) - len(result.failed)}/{len(batch)} writes sent")
        return result

    # ── History ───────────────────────────────────────────────

    def reading_strategies(self, limit: int) -> list[Optional[dict]]:
        return [
            {"orderBy": '"timestamp"', "limitToLast": limit},
            {"orderBy": '"ts"',        "limitToLast": limit},
            {"limitToLast": limit},
            None,
        ]

    async def get_readings(self, limit: Optional[int] = None) -> list[Reading]:
        """First strategy with a non-empty answer wins; else one synthetic row."""
        limit = limit or self._readings_limit
        for params in self.reading_strategies(limit):
            try:
                raw = await self._read(READINGS_PATH, params)
            except Exception as e:
                log.warning(f"Readings strategy {params} raised: {e}")
                continue
            if _records(raw):
                log.debug(f"Readings found using {params or 'basic'}")
                return rows_from_readings(raw, limit)

        log.info("No stored readings, synthesizing from live sensors")
        latest = await self.get_latest()
        date, hhmm = format_date_time(latest.captured_at)
        return [Reading(
            id   = str(int(latest.captured_at * 1000)),
            date = date,
            time = hhmm,
            gas1 = latest.gas1,
            gas2 = latest.gas2,
            gas3 = latest.gas3,
            ts   = latest.captured_at,
        )]

    # ── Legacy event logs ─────────────────────────────────────

    async def list_remote_alarms(self, limit: int = 100) -> list[ArchiveEntry]:
        raw = await self._read(ALARMS_PATH, {"orderBy": '"$key"', "limitToLast": limit})
        if raw is None:
            raw = await self._read(ALARMS_PATH)
        rows = [event_from_record(k, v) for k, v in _records(raw)]
        rows.sort(key=lambda r: r.id, reverse=True)
        return rows[:limit]

    async def list_remote_archives(self) -> list[ArchiveEntry]:
        raw  = await self._read(ARCHIVES_PATH)
        rows = [event_from_record(k, v) for k, v in _records(raw)]
        rows.sort(key=lambda r: r.id, reverse=True)
        return rows

    async def archive_remote_alarm(self, entry_id: str) -> bool:
        """Move /alarms/{id} to /archives/{id} in one multi-path update."""
        rec = await self._read(f"{ALARMS_PATH}/{entry_id}")
        if not isinstance(rec, dict):
            log.info(f"Remote alarm {entry_id} not found")
            return False
        changes = {
            f"{ARCHIVES_PATH}/{entry_id}": {
                "timestamp": rec.get("timestamp"),
                "value":     rec.get("value"),
            },
            f"{ALARMS_PATH}/{entry_id}": None,
        }
        return await asyncio.to_thread(self._store.update, changes)

    async def delete_remote_archive(self, entry_id: str) -> bool:
        return await asyncio.to_thread(self._store.delete, f"{ARCHIVES_PATH}/{entry_id}")
