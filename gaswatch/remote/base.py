"""
Remote store base class — defines the interface all transports implement.
Swap transport by changing config REMOTE.kind without touching other code.

Paths are slash-separated field names relative to the database root,
e.g. "gas1", "status/alarmOn", "resetFlag/reset".
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional
import datetime


class Subscription:
    """Handle returned by subscribe(); close() stops delivery."""

    def __init__(self, closer: Optional[Callable[[], None]] = None):
        self._closer = closer
        self.closed  = False

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._closer:
            self._closer()


class BaseRemoteStore(ABC):
    """
    Abstract remote key-value store. All implementations must provide:
      read()      — GET a path, None on empty/invalid/failed
      write()     — PUT a value at a path, True on success
      delete()    — remove a path, True on success
      update()    — multi-path write at the root, None values delete
      subscribe() — push changes of a path to a callback
    None of these raise on I/O failure.
    """

    def __init__(self, cfg: dict):
        self._cfg        = cfg
        self._connected  = False
        self._last_ok: Optional[datetime.datetime] = None
        self._last_error: Optional[str] = None

    def init(self) -> bool:
        """Prepare the transport. Return True if ready."""
        self._connected = True
        return True

    @abstractmethod
    def read(self, path: str, params: Optional[dict] = None) -> Any:
        ...

    @abstractmethod
    def write(self, path: str, value: Any) -> bool:
        ...

    @abstractmethod
    def delete(self, path: str) -> bool:
        ...

    @abstractmethod
    def update(self, changes: dict) -> bool:
        ...

    @abstractmethod
    def subscribe(self, path: str,
                  on_change: Callable[[str, Any], None]) -> Subscription:
        """on_change(path, data) is called with the changed sub-path and value."""
        ...

    def close(self):
        self._connected = False

    def _mark_ok(self):
        self._connected  = True
        self._last_ok    = datetime.datetime.now()
        self._last_error = None

    def _mark_error(self, err: str):
        self._last_error = err

    def status(self) -> dict:
        return {
            "connected":  self._connected,
            "last_ok":    self._last_ok.isoformat() if self._last_ok else None,
            "last_error": self._last_error,
        }
