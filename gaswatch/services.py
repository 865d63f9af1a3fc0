"""
Wiring — builds the object graph once at startup.

Everything is owned here and passed down explicitly; nothing in the core
reaches for module-level singletons.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from gaswatch import config
from gaswatch.archive_store import ArchiveStore
from gaswatch.detector import Detector
from gaswatch.live_state import LiveState
from gaswatch.log_store import LocalLogStore
from gaswatch.notifier import Notifier
from gaswatch.poller import Poller
from gaswatch.remote import BaseRemoteStore, get_remote_store
from gaswatch.remote.client import RemoteClient
from gaswatch.reset import ResetIssuer
from gaswatch.storage import JsonFileStorage

log = logging.getLogger("services")


@dataclass
class Services:
    store:     BaseRemoteStore
    client:    RemoteClient
    detector:  Detector
    log_store: LocalLogStore
    archive:   ArchiveStore
    notifier:  Notifier
    live:      LiveState
    poller:    Poller
    reset:     ResetIssuer
    simulate:  bool = False

    @property
    def threshold(self) -> float:
        return self.detector.threshold


def build_services(storage=None,
                   remote_store: Optional[BaseRemoteStore] = None,
                   clock: Callable[[], float] = time.time,
                   simulate: Optional[bool] = None,
                   poll_cfg: Optional[dict] = None,
                   detection_cfg: Optional[dict] = None,
                   reset_cfg: Optional[dict] = None,
                   notify_cfg: Optional[dict] = None) -> Services:
    if remote_store is None:
        remote_store = get_remote_store(config.REMOTE, config.FIREBASE)
        if not remote_store.init():
            log.warning(f"Remote store init failed: {remote_store.status()}")
    if storage is None:
        storage = JsonFileStorage(config.STORE["path"])
    if simulate is None:
        simulate = config.REMOTE.get("kind") == "memory"

    client    = RemoteClient(remote_store, config.READINGS)
    detector  = Detector(detection_cfg or config.DETECTION)
    log_store = LocalLogStore(storage, config.STORE)
    archive   = ArchiveStore()
    notifier  = Notifier(notify_cfg or config.NOTIFY)
    live      = LiveState()
    poller    = Poller(client, detector, log_store, notifier, live,
                       poll_cfg or config.POLL, clock=clock, archive=archive)
    reset     = ResetIssuer(client, poller, live, reset_cfg or config.RESET)

    return Services(
        store     = remote_store,
        client    = client,
        detector  = detector,
        log_store = log_store,
        archive   = archive,
        notifier  = notifier,
        live      = live,
        poller    = poller,
        reset     = reset,
        simulate  = simulate,
    )
