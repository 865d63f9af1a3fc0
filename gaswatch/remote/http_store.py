"""
Firebase Realtime Database over its REST API.

GET    {db_root}/{path}.json?{params}   → read
PUT    {db_root}/{path}.json            → write
DELETE {db_root}/{path}.json            → delete
PATCH  {db_root}/.json                  → multi-path update
GET    (Accept: text/event-stream)      → subscribe

Firebase answers an absent path with `null`, and proxies sometimes return
an empty body or an HTML error page. All of those read as None.
HTTP error statuses and network failures are logged and reported as
None/False; nothing here raises into the caller.
"""
import json
import logging
import threading
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Iterable, Iterator, Optional

from gaswatch.remote.base import BaseRemoteStore, Subscription

log = logging.getLogger("http_store")

_RECONNECT_DELAY = 5.0


def decode_body(raw: bytes) -> Any:
    """Response body → JSON value, None when empty or not JSON."""
    text = raw.decode("utf-8", errors="replace").strip() if raw else ""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        log.debug(f"Non-JSON body ignored: {text[:60]!r}")
        return None


def parse_sse(lines: Iterable[str]) -> Iterator[tuple[str, Any]]:
    """
    Yield (event, data) from a server-sent-events line stream.
    Firebase sends `put`/`patch` with data {"path": ..., "data": ...},
    plus `keep-alive`, `cancel` and `auth_revoked`.
    """
    event = None
    data_lines: list[str] = []
    for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if event is not None:
                payload = decode_body("\n".join(data_lines).encode("utf-8"))
                yield event, payload
            event, data_lines = None, []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event = value
        elif field == "data":
            data_lines.append(value)
    if event is not None:
        yield event, decode_body("\n".join(data_lines).encode("utf-8"))


class HttpRemoteStore(BaseRemoteStore):

    def init(self) -> bool:
        root = self._cfg.get("db_root", "")
        if not root:
            self._last_error = "No db_root configured"
            log.warning("Firebase store: no db_root configured")
            return False
        log.info(f"Firebase store ready → {root}")
        self._connected = True
        return True

    # ── URL helpers ───────────────────────────────────────────

    def url(self, path: str, params: Optional[dict] = None) -> str:
        root  = self._cfg.get("db_root", "").rstrip("/")
        path  = path.strip("/")
        query = dict(params or {})
        auth  = self._cfg.get("auth", "")
        if auth:
            query["auth"] = auth
        url = f"{root}/{path}.json" if path else f"{root}/.json"
        if query:
            url += "?" + urllib.parse.urlencode(query)
        return url

    def _request(self, method: str, path: str,
                 params: Optional[dict] = None,
                 body: Any = None) -> tuple[bool, Any]:
        """Return (ok, decoded_body). Never raises."""
        url     = self.url(path, params)
        timeout = self._cfg.get("timeout", 5)
        headers = dict(self._cfg.get("headers", {}))
        data    = None
        if body is not None or method in ("PUT", "PATCH"):
            data = json.dumps(body).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")

        req = urllib.request.Request(url=url, data=data, method=method,
                                     headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read()
                if 200 <= resp.status < 300:
                    self._mark_ok()
                    return True, decode_body(raw)
                err = f"HTTP {resp.status}"
                self._mark_error(err)
                log.warning(f"{method} /{path} failed: {err}")
                return False, None

        except urllib.error.HTTPError as e:
            err = f"HTTP {e.code}"
            self._mark_error(err)
            log.warning(f"{method} /{path} failed: {err}")
            return False, None

        except urllib.error.URLError as e:
            err = str(e.reason)
            self._connected = False
            self._mark_error(err)
            log.warning(f"{method} /{path} error: {err}")
            return False, None

        except Exception as e:
            err = str(e)
            self._connected = False
            self._mark_error(err)
            log.warning(f"{method} /{path} exception: {err}")
            return False, None

    # ── Contract ──────────────────────────────────────────────

    def read(self, path: str, params: Optional[dict] = None) -> Any:
        ok, value = self._request("GET", path, params=params)
        return value if ok else None

    def write(self, path: str, value: Any) -> bool:
        ok, _ = self._request("PUT", path, body=value)
        return ok

    def delete(self, path: str) -> bool:
        ok, _ = self._request("DELETE", path)
        return ok

    def update(self, changes: dict) -> bool:
        body = {k.strip("/"): v for k, v in changes.items()}
        ok, _ = self._request("PATCH", "", body=body)
        return ok

    def subscribe(self, path: str,
                  on_change: Callable[[str, Any], None]) -> Subscription:
        stop  = threading.Event()
        state = {"resp": None}

        def _close():
            stop.set()
            resp = state["resp"]
            if resp is not None:
                try:
                    resp.close()
                except Exception:
                    pass

        t = threading.Thread(
            target = self._stream_loop,
            args   = (path, on_change, stop, state),
            name   = f"firebase-stream-{path.strip('/') or 'root'}",
            daemon = True,
        )
        t.start()
        log.info(f"Subscribed to /{path.strip('/')}")
        return Subscription(_close)

    def _stream_loop(self, path, on_change, stop: threading.Event, state: dict):
        headers = {"Accept": "text/event-stream"}
        while not stop.is_set():
            req = urllib.request.Request(self.url(path), headers=headers)
            try:
                with urllib.request.urlopen(req) as resp:
                    state["resp"] = resp
                    lines = (raw.decode("utf-8", errors="replace") for raw in resp)
                    for event, payload in parse_sse(lines):
                        if stop.is_set():
                            return
                        if event in ("put", "patch") and isinstance(payload, dict):
                            try:
                                on_change(payload.get("path", "/"), payload.get("data"))
                            except Exception as e:
                                log.exception(f"Subscriber error on /{path}: {e}")
                        elif event in ("cancel", "auth_revoked"):
                            log.warning(f"Stream /{path} ended by server: {event}")
                            break
            except Exception as e:
                if stop.is_set():
                    return
                self._mark_error(str(e))
                log.warning(f"Stream /{path} error: {e}, retrying in {_RECONNECT_DELAY:g}s")
            finally:
                state["resp"] = None
            stop.wait(_RECONNECT_DELAY)
