"""
Simulator — stands in for the board firmware when running without
Firebase (config SIM_MODE / REMOTE.kind = "memory").

Writes smooth synthetic gas1..3 with occasional leaks above the
threshold, keeps maxGas as the running max with status/alarmOn raised
while it is above the threshold, and honours
resetFlag/reset the way the firmware does: clear maxGas, drop the flag.
"""
import asyncio
import logging
import math
import random
from typing import Optional

from gaswatch.remote.base import BaseRemoteStore

log = logging.getLogger("simulator")


class GasSim:
    """Three drifting sensor channels with an optional decaying spike."""

    def __init__(self, seed: float = 0.0, spike_chance: float = 0.02,
                 rng: random.Random = None):
        self._t      = seed
        self._spike  = 0.0
        self._chance = spike_chance
        self._rng    = rng or random.Random()

    def tick(self) -> tuple[float, float, float]:
        self._t += 0.05
        t = self._t
        if self._spike <= 1.0 and self._rng.random() < self._chance:
            self._spike = self._rng.uniform(200, 400)
            log.info(f"Simulated leak: +{self._spike:.0f}")
        self._spike *= 0.93
        base = [
            120 + 25 * math.sin(t * 0.9) + 8 * math.sin(t * 3.1),
            100 + 20 * math.sin(t * 0.7 + 1.0),
            90  + 15 * math.sin(t * 1.3 + 2.0),
        ]
        base[1] += self._spike
        return tuple(
            round(max(0.0, v + self._rng.uniform(-3, 3)), 1) for v in base
        )

    def clear_spike(self):
        self._spike = 0.0


async def run(store: BaseRemoteStore, cfg: dict, threshold: float = 250.0,
              sim: Optional[GasSim] = None):
    """Simulation loop; cancel the task to stop it."""
    log.info("Gas sensors: simulation mode")
    sim      = sim or GasSim(spike_chance=cfg.get("spike_chance", 0.02))
    interval = cfg.get("interval", 1.0)
    running_max = 0.0
    while True:
        if store.read("resetFlag/reset") is True:
            log.info("Simulator: reset requested")
            running_max = 0.0
            sim.clear_spike()
            store.write("resetFlag/reset", False)

        g1, g2, g3 = sim.tick()
        running_max = max(running_max, g1, g2, g3)
        store.update({
            "gas1":           g1,
            "gas2":           g2,
            "gas3":           g3,
            "maxGas":         running_max,
            "status/alarmOn": running_max > threshold,
        })
        await asyncio.sleep(interval)
