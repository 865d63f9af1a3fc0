"""
Data Model — value types shared by the remote client, stores and poller.

Remote values are untrusted: anything missing, non-numeric or negative
coerces to 0 so a bad field never fails a tick.
"""
import math
import time
import datetime
from dataclasses import dataclass, field
from typing import Any, Optional


def coerce_gas(value: Any) -> float:
    """Remote number → finite non-negative float, 0 otherwise."""
    if isinstance(value, bool):
        return 0.0
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(v) or v < 0:
        return 0.0
    return v


def coerce_bool(value: Any) -> Optional[bool]:
    """Only a real boolean counts; anything else means 'absent'."""
    return value if isinstance(value, bool) else None


def format_date_time(ts: float) -> tuple[str, str]:
    """Epoch seconds → ('DD-MM-YYYY', 'HH:MM') in local time."""
    d = datetime.datetime.fromtimestamp(ts)
    return d.strftime("%d-%m-%Y"), d.strftime("%H:%M")


@dataclass
class SensorTriple:
    """One poll of the three live gas sensors."""
    gas1:        float = 0.0
    gas2:        float = 0.0
    gas3:        float = 0.0
    captured_at: float = field(default_factory=time.time)

    @classmethod
    def from_raw(cls, g1: Any, g2: Any, g3: Any,
                 captured_at: Optional[float] = None) -> "SensorTriple":
        return cls(
            gas1        = coerce_gas(g1),
            gas2        = coerce_gas(g2),
            gas3        = coerce_gas(g3),
            captured_at = captured_at if captured_at is not None else time.time(),
        )

    @property
    def max(self) -> float:
        return max(self.gas1, self.gas2, self.gas3)

    def to_dict(self) -> dict:
        return {
            "gas1":       self.gas1,
            "gas2":       self.gas2,
            "gas3":       self.gas3,
            "max":        self.max,
            "capturedAt": self.captured_at,
        }


@dataclass
class AlarmState:
    alarm_on: bool = False
    source:   str  = "inferred"     # "status" | "inferred"

    def to_dict(self) -> dict:
        return {"alarmOn": self.alarm_on, "source": self.source}


@dataclass
class Reading:
    """One row of /readings history."""
    id:    str
    date:  str
    time:  str
    gas1:  float
    gas2:  float
    gas3:  float
    ts:    Optional[float] = None

    @property
    def max(self) -> float:
        return max(self.gas1, self.gas2, self.gas3)

    @property
    def value(self) -> float:
        return self.max

    def to_dict(self) -> dict:
        return {
            "id":    self.id,
            "date":  self.date,
            "time":  self.time,
            "value": self.value,
            "gas1":  self.gas1,
            "gas2":  self.gas2,
            "gas3":  self.gas3,
            "max":   self.max,
            "ts":    self.ts,
        }


@dataclass(frozen=True)
class LogEntry:
    """A confirmed high-reading event, persisted on-device."""
    id:          str
    date:        str
    time:        str
    gas1:        float
    gas2:        float
    gas3:        float
    max:         float
    recorded_at: float

    @classmethod
    def from_triple(cls, triple: SensorTriple,
                    now: Optional[float] = None) -> "LogEntry":
        now = now if now is not None else time.time()
        date, hhmm = format_date_time(now)
        return cls(
            id          = str(int(now * 1000)),
            date        = date,
            time        = hhmm,
            gas1        = triple.gas1,
            gas2        = triple.gas2,
            gas3        = triple.gas3,
            max         = triple.max,
            recorded_at = now,
        )

    def to_dict(self) -> dict:
        return {
            "id":         self.id,
            "date":       self.date,
            "time":       self.time,
            "value":      self.max,
            "gas1":       self.gas1,
            "gas2":       self.gas2,
            "gas3":       self.gas3,
            "max":        self.max,
            "recordedAt": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LogEntry":
        gas1 = coerce_gas(d.get("gas1"))
        gas2 = coerce_gas(d.get("gas2"))
        gas3 = coerce_gas(d.get("gas3"))
        return cls(
            id          = str(d["id"]),
            date        = str(d.get("date", "")),
            time        = str(d.get("time", "")),
            gas1        = gas1,
            gas2        = gas2,
            gas3        = gas3,
            max         = coerce_gas(d.get("max", max(gas1, gas2, gas3))),
            recorded_at = float(d.get("recordedAt", d.get("timestamp", 0)) or 0),
        )


@dataclass(frozen=True)
class ArchiveEntry:
    """A log entry the operator chose to keep out of the rolling log."""
    id:    str
    date:  str
    time:  str
    value: float
    gas1:  Optional[float] = None
    gas2:  Optional[float] = None
    gas3:  Optional[float] = None
    recorded_at: float = 0.0

    @classmethod
    def from_log_entry(cls, entry: LogEntry) -> "ArchiveEntry":
        return cls(
            id          = entry.id,
            date        = entry.date,
            time        = entry.time,
            value       = entry.max,
            gas1        = entry.gas1,
            gas2        = entry.gas2,
            gas3        = entry.gas3,
            recorded_at = entry.recorded_at,
        )

    def to_dict(self) -> dict:
        d = {
            "id":         self.id,
            "date":       self.date,
            "time":       self.time,
            "value":      self.value,
            "recordedAt": self.recorded_at,
        }
        for k in ("gas1", "gas2", "gas3"):
            v = getattr(self, k)
            if v is not None:
                d[k] = v
        return d


@dataclass
class GasAlert:
    """Payload handed to the notifier when a high reading is logged."""
    max_value: float
    threshold: float
    gas1:      float
    gas2:      float
    gas3:      float
    entry_id:  str
    at:        float = field(default_factory=time.time)

    @property
    def title(self) -> str:
        return "Gas Alert!"

    @property
    def body(self) -> str:
        return (f"Gas level {self.max_value:g} exceeds threshold of "
                f"{self.threshold:g}. Sensor readings: S1:{self.gas1:g}, "
                f"S2:{self.gas2:g}, S3:{self.gas3:g}")

    def to_dict(self) -> dict:
        return {
            "title":     self.title,
            "body":      self.body,
            "max":       self.max_value,
            "threshold": self.threshold,
            "gas1":      self.gas1,
            "gas2":      self.gas2,
            "gas3":      self.gas3,
            "entryId":   self.entry_id,
            "at":        self.at,
        }
