"""
Live State — the current observable output of the core.

Holds the latest sensor triple, alarm state and reset-in-progress flag.
Writers: poller and reset issuer. Readers: the server, via snapshot()
or listener callbacks fired on every change.
"""
import threading
import logging
from typing import Callable, Optional

from gaswatch.models import AlarmState, SensorTriple

log = logging.getLogger("live_state")


class LiveState:

    def __init__(self):
        self._lock          = threading.Lock()
        self._triple        = SensorTriple(captured_at=0.0)
        self._alarm         = AlarmState()
        self._reset_loading = False
        self._updated       = False
        self._listeners: list[Callable[[dict], None]] = []

    @property
    def triple(self) -> SensorTriple:
        with self._lock:
            return self._triple

    @property
    def alarm(self) -> AlarmState:
        with self._lock:
            return self._alarm

    @property
    def reset_loading(self) -> bool:
        with self._lock:
            return self._reset_loading

    @property
    def has_data(self) -> bool:
        with self._lock:
            return self._updated

    def add_listener(self, cb: Callable[[dict], None]):
        self._listeners.append(cb)

    def remove_listener(self, cb: Callable[[dict], None]):
        if cb in self._listeners:
            self._listeners.remove(cb)

    def publish(self, triple: SensorTriple, alarm: AlarmState):
        with self._lock:
            self._triple  = triple
            self._alarm   = alarm
            self._updated = True
        self._fire()

    def set_reset_loading(self, loading: bool):
        with self._lock:
            if self._reset_loading == loading:
                return
            self._reset_loading = loading
        self._fire()

    def snapshot(self, threshold: Optional[float] = None) -> dict:
        with self._lock:
            snap = {
                **self._triple.to_dict(),
                "alarmOn":      self._alarm.alarm_on,
                "alarmSource":  self._alarm.source,
                "resetLoading": self._reset_loading,
            }
        if threshold is not None:
            snap["threshold"] = threshold
        return snap

    def _fire(self):
        snap = self.snapshot()
        for cb in list(self._listeners):
            try:
                cb(snap)
            except Exception as e:
                log.warning(f"Live state listener error: {e}")
