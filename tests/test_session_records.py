import pytest

from browser_control.storage import DatabaseConfigFactory, DatabaseFactory, RecordNotFoundError, StorageError
from browser_control.storage.session_records import STATUS_CLOSED, STATUS_RUNNING, SessionRecordStore
from browser_control.storage.sqlite.sqlite_database import SQLiteDatabase


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _store(clock=None, retention_seconds=3600):
    config = DatabaseConfigFactory.create("sqlite", database=":memory:")
    database = DatabaseFactory.create("sqlite", config)
    return SessionRecordStore(database, retention_seconds=retention_seconds, clock=clock or FakeClock())


def test_factory_builds_sqlite_backend():
    config = DatabaseConfigFactory.create("sqlite3", database=":memory:")
    assert isinstance(DatabaseFactory.create("sqlite3", config), SQLiteDatabase)
    with pytest.raises(ValueError):
        DatabaseFactory.create("oracle", {})


def test_mark_running_then_get():
    store = _store()
    store.mark_running("t1", "cs-1")

    record = store.get("t1")

    assert record.tab_id == "t1"
    assert record.cloud_session_id == "cs-1"
    assert record.status == STATUS_RUNNING
    assert store.get("missing") is None


def test_mark_running_keeps_created_at():
    clock = FakeClock()
    store = _store(clock)
    store.mark_running("t1", "cs-1")
    clock.now += 50
    store.mark_running("t1", "cs-2")

    record = store.get("t1")

    assert record.cloud_session_id == "cs-2"
    assert record.created_at == 1_000.0
    assert record.updated_at == 1_050.0


def test_mark_closed():
    store = _store()
    store.mark_running("t1", "cs-1")

    assert store.mark_closed("t1") is True
    assert store.get("t1").status == STATUS_CLOSED
    assert store.mark_closed("never-seen") is False


def test_purge_keeps_closed_records_inside_retention():
    clock = FakeClock()
    store = _store(clock, retention_seconds=60)
    store.mark_running("t1", "cs-1")
    store.mark_running("t2", "cs-2")
    store.mark_closed("t1")
    clock.now += 30
    store.mark_closed("t2")

    assert store.purge() == 0
    assert store.get("t1").status == STATUS_CLOSED
    assert store.get("t2").status == STATUS_CLOSED

    clock.now += 45
    assert store.purge() == 1
    assert store.get("t1") is None
    assert store.get("t2").status == STATUS_CLOSED


def test_purge_drops_records_past_retention():
    clock = FakeClock()
    store = _store(clock, retention_seconds=60)
    store.mark_running("old", "cs-old")
    clock.now += 120
    store.mark_running("fresh", "cs-fresh")

    store.purge()

    assert store.get("old") is None
    assert store.get("fresh").is_running
    assert [record.tab_id for record in store.list_running()] == ["fresh"]


def test_sqlite_record_operations():
    db = SQLiteDatabase({"database": ":memory:"})
    db.execute_sql("CREATE TABLE items (id TEXT PRIMARY KEY, name TEXT)")
    db.insert_record("items", {"id": "a", "name": "first"})
    db.update_record("items", "a", {"name": "renamed"})

    assert db.get_record("items", "a")["name"] == "renamed"
    assert db.query_records("items", {"name": "renamed"}) == [{"id": "a", "name": "renamed"}]

    db.delete_record("items", "a")
    with pytest.raises(RecordNotFoundError):
        db.get_record("items", "a")
    with pytest.raises(RecordNotFoundError):
        db.update_record("items", "a", {"name": "ghost"})
    with pytest.raises(StorageError):
        db.query_records("items; DROP TABLE items")
    db.close()


def test_sqlite_rollback_discards_changes():
    with SQLiteDatabase({"database": ":memory:"}) as db:
        db.execute_sql("CREATE TABLE items (id TEXT PRIMARY KEY, name TEXT)")
        db.begin_transaction()
        db.insert_record("items", {"id": "a", "name": "x"})
        db.rollback_transaction()

        assert db.query_records("items") == []
