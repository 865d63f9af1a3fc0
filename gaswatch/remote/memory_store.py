"""
In-memory remote store — same interface as HttpRemoteStore.
Used in simulation mode (config REMOTE.kind = "memory") and in tests.

Supports a subset of Firebase query semantics (orderBy + limitToLast)
and failure injection so fallback paths can be exercised.
"""
import copy
import json
import logging
import threading
from typing import Any, Callable, Optional

from gaswatch.remote.base import BaseRemoteStore, Subscription

log = logging.getLogger("memory_store")


def _split(path: str) -> list[str]:
    return [p for p in path.strip("/").split("/") if p]


class MemoryRemoteStore(BaseRemoteStore):

    def __init__(self, cfg: Optional[dict] = None, data: Optional[dict] = None):
        super().__init__(cfg or {})
        self._lock      = threading.RLock()
        self._root: dict = copy.deepcopy(data) if data else {}
        self._subs: list[tuple[list[str], Callable, Subscription]] = []
        # Failure injection
        self.fail_reads:  set[str] = set()
        self.fail_writes: set[str] = set()
        self.reject_ordered_queries = False
        self.calls: list[tuple] = []

    # ── Tree helpers ──────────────────────────────────────────

    def _get(self, parts: list[str]) -> Any:
        node: Any = self._root
        for p in parts:
            if not isinstance(node, dict) or p not in node:
                return None
            node = node[p]
        return node

    def _set(self, parts: list[str], value: Any):
        if not parts:
            self._root = value if isinstance(value, dict) else {}
            return
        node = self._root
        for p in parts[:-1]:
            child = node.get(p)
            if not isinstance(child, dict):
                child = {}
                node[p] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value

    def _notify(self, parts: list[str], value: Any):
        for sub_parts, cb, handle in list(self._subs):
            if handle.closed:
                continue
            n = len(sub_parts)
            if parts[:n] == sub_parts:
                rel = "/" + "/".join(parts[n:])
                data = value
            elif sub_parts[:len(parts)] == parts:
                rel = "/"
                data = self._get(sub_parts)
            else:
                continue
            try:
                cb(rel, copy.deepcopy(data))
            except Exception as e:
                log.exception(f"Subscriber error: {e}")

    # ── Contract ──────────────────────────────────────────────

    def read(self, path: str, params: Optional[dict] = None) -> Any:
        with self._lock:
            self.calls.append(("GET", path.strip("/"), dict(params or {})))
            if path.strip("/") in self.fail_reads:
                self._mark_error(f"read /{path} failed")
                return None
            params = params or {}
            if "orderBy" in params and self.reject_ordered_queries:
                self._mark_error("HTTP 400")
                log.warning(f"GET /{path} failed: HTTP 400")
                return None
            value = copy.deepcopy(self._get(_split(path)))
            self._mark_ok()
            if not params or not isinstance(value, dict):
                return value
            return self._apply_query(value, params)

    @staticmethod
    def _apply_query(value: dict, params: dict) -> dict:
        items = list(value.items())
        order = params.get("orderBy")
        if order:
            try:
                key = json.loads(order)
            except (TypeError, ValueError):
                key = order
            if key == "$key":
                items.sort(key=lambda kv: kv[0])
            else:
                items = [kv for kv in items
                         if isinstance(kv[1], dict) and key in kv[1]]
                items.sort(key=lambda kv: kv[1][key])
        limit = params.get("limitToLast")
        if limit is not None:
            items = items[-int(limit):]
        return dict(items)

    def write(self, path: str, value: Any) -> bool:
        with self._lock:
            self.calls.append(("PUT", path.strip("/"), value))
            if path.strip("/") in self.fail_writes:
                self._mark_error(f"write /{path} failed")
                return False
            parts = _split(path)
            self._set(parts, copy.deepcopy(value))
            self._mark_ok()
            self._notify(parts, value)
            return True

    def delete(self, path: str) -> bool:
        with self._lock:
            self.calls.append(("DELETE", path.strip("/"), None))
            if path.strip("/") in self.fail_writes:
                return False
            parts = _split(path)
            self._set(parts, None)
            self._notify(parts, None)
            return True

    def update(self, changes: dict) -> bool:
        with self._lock:
            self.calls.append(("PATCH", "", dict(changes)))
            if any(k.strip("/") in self.fail_writes for k in changes):
                return False
            for k, v in changes.items():
                parts = _split(k)
                self._set(parts, copy.deepcopy(v))
                self._notify(parts, v)
            return True

    def subscribe(self, path: str,
                  on_change: Callable[[str, Any], None]) -> Subscription:
        parts = _split(path)
        handle = Subscription()
        with self._lock:
            self._subs.append((parts, on_change, handle))
            current = copy.deepcopy(self._get(parts))
        on_change("/", current)
        return handle

    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._root)
