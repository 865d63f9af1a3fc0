"""
Remote store factory — returns the configured transport instance.
Change REMOTE.kind in config.py to swap transport.
"""
from gaswatch.remote.base import BaseRemoteStore, Subscription


def get_remote_store(remote_cfg: dict, firebase_cfg: dict) -> BaseRemoteStore:
    kind = remote_cfg.get("kind", "http").lower()

    if kind == "http":
        from gaswatch.remote.http_store import HttpRemoteStore
        return HttpRemoteStore(firebase_cfg)

    elif kind == "memory":
        from gaswatch.remote.memory_store import MemoryRemoteStore
        return MemoryRemoteStore(remote_cfg)

    else:
        raise ValueError(f"Unknown remote store kind: {kind!r}. Use 'http' or 'memory'.")


__all__ = ["BaseRemoteStore", "Subscription", "get_remote_store"]
