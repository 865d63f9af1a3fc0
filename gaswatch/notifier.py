"""
Notifier — fire-and-forget fan-out of gas alerts.

Every alert is logged. When enabled it is also handed to registered sinks
(e.g. the WebSocket broadcaster) and POSTed to an optional webhook in a
background thread. notify() never raises.
"""
import json
import logging
import threading
import urllib.error
import urllib.request
from typing import Callable

from gaswatch.models import GasAlert

log = logging.getLogger("notifier")


class Notifier:

    def __init__(self, cfg: dict):
        self._cfg     = cfg
        self._enabled = bool(cfg.get("enabled", True))
        self._sinks: list[Callable[[GasAlert], None]] = []
        self.sent     = 0

    def add_sink(self, sink: Callable[[GasAlert], None]):
        self._sinks.append(sink)

    def remove_sink(self, sink: Callable[[GasAlert], None]):
        if sink in self._sinks:
            self._sinks.remove(sink)

    def notify(self, alert: GasAlert):
        log.warning(f"Gas alert: max {alert.max_value:g} >= threshold "
                    f"{alert.threshold:g} (S1:{alert.gas1:g} S2:{alert.gas2:g} "
                    f"S3:{alert.gas3:g})")
        if not self._enabled:
            return
        self.sent += 1
        for sink in list(self._sinks):
            try:
                sink(alert)
            except Exception as e:
                log.warning(f"Notification sink error: {e}")

        if self._cfg.get("webhook_url"):
            threading.Thread(
                target = self._post_webhook,
                args   = (alert,),
                name   = "gas-alert-webhook",
                daemon = True,
            ).start()

    def _post_webhook(self, alert: GasAlert) -> bool:
        url     = self._cfg.get("webhook_url", "")
        timeout = self._cfg.get("timeout", 5)
        payload = json.dumps({"event_type": "gas_alert", **alert.to_dict()}).encode("utf-8")
        req = urllib.request.Request(
            url     = url,
            data    = payload,
            method  = "POST",
            headers = {"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                if resp.status in (200, 201, 202, 204):
                    log.info(f"Webhook notified → HTTP {resp.status}")
                    return True
                log.warning(f"Webhook failed: HTTP {resp.status}")
                return False
        except urllib.error.URLError as e:
            log.warning(f"Webhook error: {e.reason}")
            return False
        except Exception as e:
            log.warning(f"Webhook exception: {e}")
            return False
