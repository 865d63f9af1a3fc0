"""
Unit tests for alarm derivation and high-reading dedup
"""
from gaswatch.detector import Detector, derive_alarm_state, within_cooldown
from gaswatch.models import LogEntry, SensorTriple


class TestAlarmDerivation:

    def test_status_flag_wins(self):
        triple = SensorTriple(gas1=900)
        state = derive_alarm_state(False, 900, triple, 250)
        assert state.alarm_on is False
        assert state.source == "status"

    def test_no_status_low_max_gas(self):
        """No /status, /maxGas = 100, threshold 250 → alarm off"""
        state = derive_alarm_state(None, 100, SensorTriple(), 250)
        assert state.alarm_on is False
        assert state.source == "inferred"

    def test_inferred_from_live_triple(self):
        state = derive_alarm_state(None, None, SensorTriple(gas1=50, gas2=310, gas3=40), 250)
        assert state.alarm_on is True

    def test_inferred_from_max_gas(self):
        assert derive_alarm_state(None, 251, None, 250).alarm_on is True

    def test_inference_is_strictly_above(self):
        assert derive_alarm_state(None, 250, SensorTriple(gas1=250), 250).alarm_on is False

    def test_malformed_max_gas_is_zero(self):
        assert derive_alarm_state(None, "oops", None, 250).alarm_on is False


class TestDedup:

    def _entry(self, max_val, at):
        return LogEntry.from_triple(SensorTriple(gas1=max_val), now=at)

    def test_no_previous_entry(self):
        assert within_cooldown(None, 100.0, 250, 30) is False

    def test_recent_high_entry_suppresses(self):
        assert within_cooldown(self._entry(300, 100.0), 110.0, 250, 30) is True

    def test_window_bound_is_exclusive(self):
        assert within_cooldown(self._entry(300, 100.0), 130.0, 250, 30) is False

    def test_recent_low_entry_does_not_suppress(self):
        assert within_cooldown(self._entry(100, 100.0), 101.0, 250, 30) is False


class TestDetector:

    def test_threshold_is_inclusive_for_logging(self):
        d = Detector({"gas_threshold": 250, "cooldown_sec": 30})
        decision = d.evaluate(SensorTriple(gas3=250), None, 0.0)
        assert decision.high and decision.record

    def test_below_threshold_never_records(self):
        d = Detector({"gas_threshold": 250, "cooldown_sec": 30})
        decision = d.evaluate(SensorTriple(gas1=249.9), None, 0.0)
        assert not decision.high
        assert not decision.record

    def test_suppressed_within_cooldown(self):
        d = Detector({"gas_threshold": 250, "cooldown_sec": 30})
        last = LogEntry.from_triple(SensorTriple(gas1=400), now=100.0)
        decision = d.evaluate(SensorTriple(gas1=400), last, 120.0)
        assert decision.high and decision.suppressed and not decision.record
