"""
Detection & Polling Loop.

  IDLE ──start()──► POLLING ──stop()──► STOPPED

A fixed-rate timer spawns one tick per interval. A tick reads the sensor
triple and the alarm inputs concurrently, waits for both, then (without
yielding to the event loop) derives the alarm, decides whether to log a
high reading, and publishes to LiveState.

Ticks may overlap in their I/O, up to max_in_flight at a time; a timer
tick that finds that many still waiting is skipped. Results are applied
only if:
  - the poller is still running under the same start token, and
  - no newer tick has published already (sequence numbers).
A failed fetch aborts that tick only; the timer keeps going.
"""
import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from gaswatch.archive_store import ArchiveStore
from gaswatch.detector import Decision, Detector
from gaswatch.live_state import LiveState
from gaswatch.log_store import LocalLogStore
from gaswatch.models import AlarmState, GasAlert, LogEntry, SensorTriple
from gaswatch.notifier import Notifier
from gaswatch.remote.client import RemoteClient

log = logging.getLogger("poller")


class PollerState(enum.Enum):
    IDLE     = "idle"
    POLLING  = "polling"
    STOPPED  = "stopped"


@dataclass
class TickResult:
    seq:      int
    triple:   SensorTriple
    alarm:    AlarmState
    decision: Decision
    entry:    Optional[LogEntry] = None


class Poller:

    def __init__(self,
                 client:    RemoteClient,
                 detector:  Detector,
                 log_store: LocalLogStore,
                 notifier:  Notifier,
                 live:      LiveState,
                 cfg:       dict,
                 clock:     Callable[[], float] = time.time,
                 archive:   Optional[ArchiveStore] = None):
        self._client    = client
        self._detector  = detector
        self._log_store = log_store
        self._notifier  = notifier
        self._live      = live
        self._archive   = archive
        self._interval  = float(cfg.get("interval", 1.0))
        self._max_in_flight = max(1, int(cfg.get("max_in_flight", 1)))
        self._clock     = clock

        self._state       = PollerState.IDLE
        self._token: Optional[object] = None
        self._seq         = 0
        self._applied_seq = 0
        self._timer: Optional[asyncio.Task] = None
        self._ticks: set[asyncio.Task] = set()

        self.ticks_ok     = 0
        self.ticks_failed = 0
        self.ticks_stale  = 0
        self.ticks_skipped = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def interval(self) -> float:
        return self._interval

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self, first_tick_delay: float = 0.0):
        """Begin polling. Must be called from inside a running event loop."""
        if self._state is not PollerState.IDLE:
            raise RuntimeError(f"Poller cannot start from {self._state.value}")
        token        = object()
        self._token  = token
        self._state  = PollerState.POLLING
        self._timer  = asyncio.get_running_loop().create_task(
            self._run(token, first_tick_delay))
        log.info(f"Polling started every {self._interval:g}s")

    def stop(self):
        """Stop polling; in-flight ticks are cancelled and their results dropped."""
        if self._state is not PollerState.POLLING:
            return
        self._state = PollerState.STOPPED
        self._token = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for t in list(self._ticks):
            t.cancel()
        self._ticks.clear()
        log.info("Polling stopped")

    def _alive(self, token: Optional[object]) -> bool:
        return token is not None and token is self._token

    async def _run(self, token: object, first_tick_delay: float):
        if first_tick_delay > 0:
            await asyncio.sleep(first_tick_delay)
        while self._alive(token):
            if len(self._ticks) >= self._max_in_flight:
                self.ticks_skipped += 1
                log.debug(f"Tick skipped: {len(self._ticks)} still in flight")
            else:
                task = asyncio.create_task(self._tick(token))
                self._ticks.add(task)
                task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(self._interval)

    async def poll_once(self) -> Optional[TickResult]:
        """One tick on demand. None if not polling, failed, or discarded."""
        if self._state is not PollerState.POLLING:
            log.debug("poll_once ignored: poller not running")
            return None
        return await self._tick(self._token)

    # ── Tick ──────────────────────────────────────────────────

    async def _tick(self, token: object) -> Optional[TickResult]:
        self._seq += 1
        seq = self._seq

        try:
            triple, (status_flag, max_gas) = await asyncio.gather(
                self._client.get_latest(),
                self._client.get_alarm_inputs(),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.ticks_failed += 1
            log.warning(f"Tick {seq} aborted: {e}")
            return None

        # No awaits from here on: overlapping ticks cannot interleave.
        if not self._alive(token):
            log.debug(f"Tick {seq} discarded: poller stopped")
            return None
        if seq < self._applied_seq:
            self.ticks_stale += 1
            log.debug(f"Tick {seq} discarded: tick {self._applied_seq} is newer")
            return None

        try:
            alarm    = self._detector.alarm_state(status_flag, max_gas, triple)
            result   = self._record(seq, triple, alarm)
        except Exception as e:
            self.ticks_failed += 1
            log.exception(f"Tick {seq} detection error: {e}")
            return None

        self._applied_seq = seq
        self._live.publish(triple, alarm)
        self.ticks_ok += 1
        log.debug(f"Tick {seq}: max={triple.max:g} alarm={alarm.alarm_on} "
                  f"({alarm.source})")
        return result

    def _record(self, seq: int, triple: SensorTriple,
                alarm: AlarmState) -> TickResult:
        now      = self._clock()
        last     = self._log_store.latest()
        decision = self._detector.evaluate(triple, last, now)
        result   = TickResult(seq=seq, triple=triple, alarm=alarm, decision=decision)

        if decision.high and decision.suppressed:
            log.debug(f"High reading {triple.max:g} within cooldown of {last.id}")
        if not decision.record:
            return result

        reserved = self._archive.ids() if self._archive is not None else ()
        entry = self._log_store.append(LogEntry.from_triple(triple, now),
                                       reserved_ids=reserved)
        result.entry = entry
        self._notifier.notify(GasAlert(
            max_value = triple.max,
            threshold = self._detector.threshold,
            gas1      = triple.gas1,
            gas2      = triple.gas2,
            gas3      = triple.gas3,
            entry_id  = entry.id,
            at        = now,
        ))
        return result
