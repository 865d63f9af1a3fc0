"""
Unit tests for alert fan-out: log line, sinks and the webhook POST
"""
import json
import logging
import threading
import urllib.error
import urllib.request

import pytest

from gaswatch.models import GasAlert
from gaswatch.notifier import Notifier


def make_alert(max_value=310):
    return GasAlert(max_value=max_value, threshold=250, gas1=50, gas2=max_value,
                    gas3=40, entry_id="1700000000000", at=1_700_000_000.0)


class FakeResponse:
    def __init__(self, status=200):
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def posted(monkeypatch):
    """Captures webhook requests instead of sending them."""
    requests = []

    def _urlopen(req, timeout=None):
        requests.append(req)
        return FakeResponse(200)

    monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
    return requests


def join_webhook_threads():
    for t in threading.enumerate():
        if t.name == "gas-alert-webhook":
            t.join(timeout=2)


class TestNotifier:

    def test_sinks_receive_alert(self):
        notifier = Notifier({"enabled": True})
        got = []
        notifier.add_sink(got.append)
        notifier.notify(make_alert())
        assert got and got[0].max_value == 310
        assert notifier.sent == 1

    def test_disabled_only_logs(self, posted, caplog):
        notifier = Notifier({"enabled": False, "webhook_url": "http://hook.local/x"})
        got = []
        notifier.add_sink(got.append)
        with caplog.at_level(logging.WARNING, logger="notifier"):
            notifier.notify(make_alert())
        join_webhook_threads()

        assert "Gas alert: max 310" in caplog.text
        assert got == []
        assert posted == []
        assert notifier.sent == 0

    def test_failing_sink_does_not_stop_others(self):
        notifier = Notifier({"enabled": True})
        got = []

        def broken(_alert):
            raise RuntimeError("sink down")

        notifier.add_sink(broken)
        notifier.add_sink(got.append)
        notifier.notify(make_alert())
        assert len(got) == 1

    def test_removed_sink_not_called(self):
        notifier = Notifier({"enabled": True})
        got = []
        notifier.add_sink(got.append)
        notifier.remove_sink(got.append)
        notifier.notify(make_alert())
        assert got == []


class TestWebhook:

    def test_post_body(self, posted):
        notifier = Notifier({"enabled": True, "webhook_url": "http://hook.local/gas"})
        notifier.notify(make_alert())
        join_webhook_threads()

        assert len(posted) == 1
        req = posted[0]
        assert req.full_url == "http://hook.local/gas"
        assert req.get_method() == "POST"
        body = json.loads(req.data.decode("utf-8"))
        assert body["event_type"] == "gas_alert"
        assert body["max"] == 310
        assert body["threshold"] == 250
        assert body["entryId"] == "1700000000000"
        assert body["title"] == "Gas Alert!"

    def test_no_url_no_post(self, posted):
        Notifier({"enabled": True, "webhook_url": ""}).notify(make_alert())
        join_webhook_threads()
        assert posted == []

    def test_network_error_is_reported_not_raised(self, monkeypatch):
        def _urlopen(req, timeout=None):
            raise urllib.error.URLError("unreachable")

        monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
        notifier = Notifier({"enabled": True, "webhook_url": "http://hook.local/gas"})
        assert notifier._post_webhook(make_alert()) is False

    def test_non_success_status(self, monkeypatch):
        monkeypatch.setattr(urllib.request, "urlopen",
                            lambda req, timeout=None: FakeResponse(500))
        notifier = Notifier({"enabled": True, "webhook_url": "http://hook.local/gas"})
        assert notifier._post_webhook(make_alert()) is False
