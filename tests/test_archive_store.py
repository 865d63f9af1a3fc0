"""
Unit tests for moving log entries into the archive
"""
import pytest

from gaswatch.archive_store import ArchiveStore
from gaswatch.log_store import LocalLogStore
from gaswatch.models import ArchiveEntry, LogEntry, SensorTriple
from gaswatch.storage import MemoryStorage


@pytest.fixture
def log_store():
    store = LocalLogStore(MemoryStorage(), {"max_entries": 100})
    for at, value in ((10.0, 260), (20.0, 300), (30.0, 420)):
        store.append(LogEntry.from_triple(SensorTriple(gas2=value), now=at))
    return store


class TestArchiveStore:

    def test_archive_moves_entry(self, log_store):
        archive = ArchiveStore()
        target = log_store.list_all()[1]
        archived = archive.archive_from_log(log_store, target.id)

        assert archived.id == target.id
        assert archived.value == 300
        assert log_store.get(target.id) is None
        assert archive.get(target.id) == archived

    def test_id_sets_stay_disjoint(self, log_store):
        archive = ArchiveStore()
        for e in log_store.list_all()[:2]:
            archive.archive_from_log(log_store, e.id)
            assert log_store.ids().isdisjoint(archive.ids())
        assert len(log_store) == 1
        assert len(archive) == 2

    def test_unknown_id(self, log_store):
        assert ArchiveStore().archive_from_log(log_store, "nope") is None
        assert len(log_store) == 3

    def test_add_rejects_id_still_in_log(self, log_store):
        entry = log_store.latest()
        with pytest.raises(ValueError):
            ArchiveStore().add(ArchiveEntry.from_log_entry(entry), log_store=log_store)

    def test_new_log_entry_never_reuses_archived_id(self, log_store):
        archive = ArchiveStore()
        newest = log_store.latest()
        archive.archive_from_log(log_store, newest.id)

        same_ms = LogEntry.from_triple(SensorTriple(gas1=500), now=30.0)
        assert same_ms.id == newest.id
        added = log_store.append(same_ms, reserved_ids=archive.ids())

        assert added.id != newest.id
        assert log_store.ids().isdisjoint(archive.ids())

    def test_add_requires_log_store(self, log_store):
        entry = ArchiveEntry.from_log_entry(log_store.latest())
        with pytest.raises(TypeError):
            ArchiveStore().add(entry)

    def test_list_newest_first_and_delete(self, log_store):
        archive = ArchiveStore()
        for e in log_store.list_all():
            archive.archive_from_log(log_store, e.id)
        values = [a.value for a in archive.list_all()]
        assert values == [420, 300, 260]

        newest = archive.list_all()[0]
        assert archive.remove_by_id(newest.id) is True
        assert archive.remove_by_id(newest.id) is False
        archive.clear()
        assert archive.list_all() == []
