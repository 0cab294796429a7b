"""
Unit tests for snapshot backup and restore.
"""

import json

import pytest

from core.entity_store import (
    COLLECTIONS,
    MENU,
    ORDER_SEQUENCE,
    ORDERS,
    PRINTER_CONFIG,
    RECORDS,
    SETTINGS,
    EntityStore,
)
from core.exceptions import InvalidSnapshotError
from core.kv_store import SQLiteKeyValueStore
from models.settings import SystemSettings
from services.backup_service import SNAPSHOT_VERSION, BackupService


# Fixtures

@pytest.fixture
def medium():
    kv = SQLiteKeyValueStore(":memory:")
    kv.initialize()
    yield kv
    kv.cleanup()


@pytest.fixture
def store(medium):
    return EntityStore(medium)


@pytest.fixture
def backup(store):
    return BackupService(store)


@pytest.fixture
def populated(store):
    """Store with a little of everything."""
    store.put(ORDERS, [
        {"id": "o2", "orderNumber": 2, "total": 1035.0, "status": "PENDING"},
        {"id": "o1", "orderNumber": 1, "total": 945.5, "status": "COMPLETED"},
    ])
    store.put(MENU, [{"id": "m1", "name": "چکن کڑاہی", "price": 500}])
    store.put_settings(SystemSettings(restaurant_name="Shinwari", tax_rate=5))
    store.put_counter(ORDER_SEQUENCE, 3)
    return store


def stored_values(medium):
    keys = list(COLLECTIONS) + list(RECORDS) + [ORDER_SEQUENCE]
    return {key: medium.get(key) for key in keys}


class TestCreateSnapshot:

    def test_snapshot_has_every_key(self, backup):
        snapshot = backup.create_snapshot()

        assert snapshot["version"] == SNAPSHOT_VERSION
        assert "exported_at" in snapshot
        for collection in COLLECTIONS:
            assert snapshot[collection] == []
        assert snapshot[SETTINGS]["taxRate"] == 0
        assert snapshot[PRINTER_CONFIG]["paperWidth"] == "80mm"
        assert snapshot[ORDER_SEQUENCE] == 1

    def test_export_is_json_bytes(self, populated, backup):
        blob = backup.export_snapshot()
        document = json.loads(blob.decode("utf-8"))

        assert document[MENU][0]["name"] == "چکن کڑاہی"
        assert document[ORDER_SEQUENCE] == 3


class TestRestoreSnapshot:

    def test_round_trip_is_byte_equal(self, populated, backup, medium):
        before = stored_values(medium)

        assert backup.restore_snapshot(backup.create_snapshot()) is True

        for collection in COLLECTIONS:
            expected = before[collection] if before[collection] is not None else "[]"
            assert medium.get(collection) == expected
        assert medium.get(SETTINGS) == before[SETTINGS]
        assert medium.get(ORDER_SEQUENCE) == before[ORDER_SEQUENCE]

    def test_restore_from_bytes_replaces_everything(self, populated, backup, store):
        blob = backup.export_snapshot()
        backup.clear_all()
        assert store.get(ORDERS) == []

        assert backup.restore_snapshot(blob) is True

        assert [o["id"] for o in store.get(ORDERS)] == ["o2", "o1"]
        assert store.get_settings().restaurant_name == "Shinwari"
        assert store.get_counter(ORDER_SEQUENCE) == 3

    def test_missing_orders_key_fails_closed(self, populated, backup, store):
        before = store.get(ORDERS)
        snapshot = backup.create_snapshot()
        del snapshot[ORDERS]
        snapshot[MENU] = []

        assert backup.restore_snapshot(snapshot) is False

        assert store.get(ORDERS) == before
        assert len(store.get(MENU)) == 1

    def test_invalid_json_fails_closed(self, populated, backup, store):
        assert backup.restore_snapshot(b"{not json") is False
        assert len(store.get(ORDERS)) == 2

    def test_non_object_document_rejected(self, backup):
        with pytest.raises(InvalidSnapshotError):
            backup.restore_snapshot_or_raise("[1, 2, 3]")

    def test_collection_not_a_list_rejected(self, backup):
        snapshot = backup.create_snapshot()
        snapshot[MENU] = {"id": "m1"}

        with pytest.raises(InvalidSnapshotError, match="menu"):
            backup.restore_snapshot_or_raise(snapshot)

    def test_newer_version_rejected(self, backup):
        snapshot = backup.create_snapshot()
        snapshot["version"] = SNAPSHOT_VERSION + 1

        assert backup.restore_snapshot(snapshot) is False

    def test_missing_singletons_fall_back_to_defaults(self, populated, backup, store):
        snapshot = backup.create_snapshot()
        del snapshot[SETTINGS]
        del snapshot[PRINTER_CONFIG]

        assert backup.restore_snapshot(snapshot) is True

        assert store.get_settings().restaurant_name == ""
        assert store.get_printer_config().paper_width == "80mm"

    def test_counter_behind_orders_is_advanced(self, backup, store):
        snapshot = backup.create_snapshot()
        snapshot[ORDERS] = [{"id": "o9", "orderNumber": 9}, {"id": "o4", "orderNumber": 4}]
        snapshot[ORDER_SEQUENCE] = 2

        assert backup.restore_snapshot(snapshot) is True

        assert store.get_counter(ORDER_SEQUENCE) == 10

    def test_counter_ahead_of_orders_is_kept(self, backup, store):
        snapshot = backup.create_snapshot()
        snapshot[ORDERS] = [{"id": "o1", "orderNumber": 1}]
        snapshot[ORDER_SEQUENCE] = 50

        backup.restore_snapshot(snapshot)

        assert store.get_counter(ORDER_SEQUENCE) == 50

    def test_malformed_order_entries_fail_closed(self, populated, backup, store):
        snapshot = backup.create_snapshot()
        snapshot[ORDERS] = [1, {"orderNumber": 3}]

        assert backup.restore_snapshot(json.dumps(snapshot)) is False

        assert [o["id"] for o in store.get(ORDERS)] == ["o2", "o1"]

    @pytest.mark.parametrize("order", [
        {"orderNumber": 3},
        {"id": 7, "orderNumber": 3},
        {"id": "o3"},
        {"id": "o3", "orderNumber": "3"},
        {"id": "o3", "orderNumber": True},
    ])
    def test_order_without_id_or_number_rejected(self, backup, order):
        snapshot = backup.create_snapshot()
        snapshot[ORDERS] = [order]

        with pytest.raises(InvalidSnapshotError, match=r"orders\[0\]"):
            backup.restore_snapshot_or_raise(snapshot)

    def test_infinite_counter_fails_closed(self, populated, backup, store):
        blob = backup.export_snapshot().decode("utf-8")
        blob = blob.replace('"order_sequence":3', '"order_sequence":1e400')

        assert backup.restore_snapshot(blob) is False

        assert store.get_counter(ORDER_SEQUENCE) == 3

    def test_infinite_order_number_fails_closed(self, populated, backup, store):
        blob = backup.export_snapshot().decode("utf-8")
        blob = blob.replace('"orderNumber":2', '"orderNumber":1e400')

        with pytest.raises(InvalidSnapshotError):
            backup.restore_snapshot_or_raise(blob)
        assert len(store.get(ORDERS)) == 2


class TestFilesAndClear:

    def test_export_and_import_file(self, populated, backup, store, tmp_path):
        path = backup.export_to_file(tmp_path / "backups" / "pos.json")
        backup.clear_all()

        assert backup.import_from_file(path) is True
        assert len(store.get(ORDERS)) == 2

    def test_import_missing_file_returns_false(self, backup, tmp_path):
        assert backup.import_from_file(tmp_path / "nope.json") is False

    def test_clear_all_resets_everything(self, populated, backup, store):
        backup.clear_all()

        for collection in COLLECTIONS:
            assert store.get(collection) == []
        assert store.get_settings().restaurant_name == ""
        assert store.get_counter(ORDER_SEQUENCE) == 1
