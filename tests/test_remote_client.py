"""
Unit tests for the device field layout: live values, reset batch,
readings fallback chain and the legacy /alarms → /archives move
"""
import asyncio

from gaswatch.detector import Detector
from gaswatch.remote.client import RemoteClient, rows_from_readings
from gaswatch.remote.memory_store import MemoryRemoteStore

DETECTOR = Detector({"gas_threshold": 250, "cooldown_sec": 30})


def five_readings():
    return {
        f"-k{i}": {"timestamp": 1_700_000_000 + i * 60, "gas1": i, "gas2": 10 * i, "gas3": 1}
        for i in range(5)
    }


class TestLiveValues:

    def test_latest_coerces_missing_values(self):
        store = MemoryRemoteStore(data={"gas1": 50, "gas2": "bad"})
        triple = asyncio.run(RemoteClient(store).get_latest())
        assert (triple.gas1, triple.gas2, triple.gas3) == (50.0, 0.0, 0.0)

    def test_alarm_from_status(self):
        store = MemoryRemoteStore(data={"status": {"alarmOn": True}, "maxGas": 0})
        state = asyncio.run(RemoteClient(store).get_alarm_status(DETECTOR))
        assert state.alarm_on is True
        assert state.source == "status"

    def test_non_boolean_status_is_ignored(self):
        store = MemoryRemoteStore(data={"status": {"alarmOn": "yes"}, "maxGas": 100})
        flag, max_gas = asyncio.run(RemoteClient(store).get_alarm_inputs())
        assert flag is None
        assert max_gas == 100

    def test_alarm_inferred_from_max_gas(self):
        """No /status, /maxGas = 100, threshold 250 → alarm off"""
        store = MemoryRemoteStore(data={"maxGas": 100})
        state = asyncio.run(RemoteClient(store).get_alarm_status(DETECTOR))
        assert state.alarm_on is False
        assert state.source == "inferred"


class TestReset:

    def test_all_three_fields_written(self):
        store = MemoryRemoteStore(data={"maxGas": 700, "status": {"alarmOn": True}})
        result = asyncio.run(RemoteClient(store).send_reset())
        assert result.success is True
        assert result.failed == []
        snap = store.snapshot()
        assert snap["resetFlag"]["reset"] is True
        assert snap["status"]["alarmOn"] is False
        assert snap["maxGas"] == 0

    def test_partial_failure_still_succeeds(self):
        store = MemoryRemoteStore()
        store.fail_writes = {"resetFlag/reset", "maxGas"}
        result = asyncio.run(RemoteClient(store).send_reset())
        assert result.success is True
        assert sorted(result.failed) == ["maxGas", "resetFlag/reset"]

    def test_total_failure(self):
        store = MemoryRemoteStore()
        store.fail_writes = {"resetFlag/reset", "maxGas", "status/alarmOn"}
        assert asyncio.run(RemoteClient(store).send_reset()).success is False


class TestReadings:

    def test_ordered_query_wins(self):
        store = MemoryRemoteStore(data={"readings": five_readings()})
        client = RemoteClient(store)
        rows = asyncio.run(client.get_readings(3))
        assert len(rows) == 3
        assert [r.gas2 for r in rows] == [40, 30, 20]
        first_get = [c for c in store.calls if c[0] == "GET"][0]
        assert first_get[2] == {"orderBy": '"timestamp"', "limitToLast": 3}

    def test_falls_back_to_unordered_fetch(self):
        """Ordered queries fail, unordered bounded fetch returns 5 records"""
        store = MemoryRemoteStore(data={"readings": five_readings()})
        store.reject_ordered_queries = True
        rows = asyncio.run(RemoteClient(store).get_readings(50))
        assert len(rows) == 5
        stamps = [r.ts for r in rows]
        assert stamps == sorted(stamps, reverse=True)
        tried = [c[2] for c in store.calls if c[1] == "readings"]
        assert tried[-1] == {"limitToLast": 50}

    def test_alternate_ts_field(self):
        data = {"a": {"ts": 100, "gas1": 1}, "b": {"ts": 200, "gas1": 2}}
        store = MemoryRemoteStore(data={"readings": data})
        rows = asyncio.run(RemoteClient(store).get_readings(10))
        assert [r.id for r in rows] == ["200", "100"]

    def test_synthesizes_from_live_values(self):
        store = MemoryRemoteStore(data={"gas1": 12, "gas2": 340, "gas3": 7})
        rows = asyncio.run(RemoteClient(store).get_readings(10))
        assert len(rows) == 1
        assert rows[0].value == 340
        assert rows[0].gas3 == 7

    def test_rows_without_timestamp_sort_first(self):
        raw = {"x": {"timestamp": 100, "gas1": 1}, "y": {"gas1": 2}}
        rows = rows_from_readings(raw, 10, now=500.0)
        assert rows[0].id == "row-1"
        assert rows[1].id == "100"

    def test_non_numeric_timestamp_falls_back_to_ts(self):
        raw = {"a": {"timestamp": "2024-01-01T10:00", "ts": 300, "gas1": 4}}
        rows = rows_from_readings(raw, 10, now=500.0)
        assert rows[0].id == "300"
        assert rows[0].ts == 300.0

    def test_millisecond_timestamps(self):
        rows = rows_from_readings({"a": {"timestamp": 1_700_000_000_000}}, 10)
        assert rows[0].ts == 1_700_000_000.0

    def test_list_payload(self):
        rows = rows_from_readings([None, {"timestamp": 5, "gas3": 9}], 10)
        assert len(rows) == 1 and rows[0].max == 9


class TestLegacyEventLogs:

    def _store(self):
        return MemoryRemoteStore(data={
            "alarms": {
                "1700000001": {"timestamp": "2023-11-14T22:13:21", "value": 310},
                "1700000002": {"timestamp": "2023-11-14T22:13:22Z", "value": 420},
            },
        })

    def test_list_alarms_newest_first(self):
        rows = asyncio.run(RemoteClient(self._store()).list_remote_alarms())
        assert [r.id for r in rows] == ["1700000002", "1700000001"]
        assert rows[0].date == "2023-11-14"
        assert rows[0].time == "22:13:22"

    def test_archive_moves_record(self):
        store = self._store()
        client = RemoteClient(store)
        assert asyncio.run(client.archive_remote_alarm("1700000001")) is True
        snap = store.snapshot()
        assert "1700000001" not in snap["alarms"]
        assert snap["archives"]["1700000001"]["value"] == 310
        archives = asyncio.run(client.list_remote_archives())
        assert [a.id for a in archives] == ["1700000001"]

    def test_archive_unknown_id(self):
        assert asyncio.run(RemoteClient(self._store()).archive_remote_alarm("nope")) is False

    def test_delete_archive(self):
        store = MemoryRemoteStore(data={"archives": {"9": {"value": 1}}})
        assert asyncio.run(RemoteClient(store).delete_remote_archive("9")) is True
        assert store.snapshot()["archives"] == {}
