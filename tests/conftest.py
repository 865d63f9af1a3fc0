"""
Shared fixtures: in-memory remote store, storage and a controllable clock.
"""
import pytest

from gaswatch.remote.memory_store import MemoryRemoteStore
from gaswatch.services import build_services
from gaswatch.storage import MemoryStorage


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return MemoryRemoteStore(data={"gas1": 0, "gas2": 0, "gas3": 0})


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def services(remote, storage, clock):
    return build_services(
        storage       = storage,
        remote_store  = remote,
        clock         = clock,
        simulate      = False,
        poll_cfg      = {"interval": 3600},
        detection_cfg = {"gas_threshold": 250, "cooldown_sec": 30},
        reset_cfg     = {"grace_sec": 0},
        notify_cfg    = {"enabled": True, "webhook_url": ""},
    )
