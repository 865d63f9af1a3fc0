"""
Detection — pure decisions made on every poll tick.

  alarm state    device flag if present, else inferred from values
  high reading   max(gas1, gas2, gas3) >= threshold
  dedup          skip logging while the newest high entry is
                 younger than the cooldown window

One threshold serves both alarm inference and log detection.
"""
from dataclasses import dataclass
from typing import Optional

from gaswatch.models import AlarmState, LogEntry, SensorTriple, coerce_gas


def derive_alarm_state(status_flag: Optional[bool],
                       max_gas,
                       triple: Optional[SensorTriple],
                       threshold: float) -> AlarmState:
    """
    status_flag wins when the device reported a real boolean.
    Otherwise the alarm is on when the device running max (/maxGas) or
    the live max is strictly above the threshold.
    """
    if isinstance(status_flag, bool):
        return AlarmState(alarm_on=status_flag, source="status")
    peak = coerce_gas(max_gas)
    if triple is not None:
        peak = max(peak, triple.max)
    return AlarmState(alarm_on=peak > threshold, source="inferred")


def is_high_reading(triple: SensorTriple, threshold: float) -> bool:
    return triple.max >= threshold


def within_cooldown(last: Optional[LogEntry], now: float,
                    threshold: float, cooldown: float) -> bool:
    """True if `last` is a high entry recorded less than `cooldown` seconds ago."""
    if last is None:
        return False
    if last.max < threshold:
        return False
    return (now - last.recorded_at) < cooldown


@dataclass
class Decision:
    high:       bool
    suppressed: bool

    @property
    def record(self) -> bool:
        return self.high and not self.suppressed


class Detector:
    """Binds threshold and cooldown from config DETECTION."""

    def __init__(self, cfg: dict):
        self.threshold = float(cfg.get("gas_threshold", 250))
        self.cooldown  = float(cfg.get("cooldown_sec", 30))

    def alarm_state(self, status_flag, max_gas,
                    triple: Optional[SensorTriple]) -> AlarmState:
        return derive_alarm_state(status_flag, max_gas, triple, self.threshold)

    def evaluate(self, triple: SensorTriple, last: Optional[LogEntry],
                 now: float) -> Decision:
        high = is_high_reading(triple, self.threshold)
        suppressed = high and within_cooldown(last, now, self.threshold, self.cooldown)
        return Decision(high=high, suppressed=suppressed)
