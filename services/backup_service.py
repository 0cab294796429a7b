"""
Whole-database backup and restore.

A snapshot is one JSON document holding every collection, both singleton
records and the order sequence. The same bytes are written to backup files
and uploaded to the cloud copy, so a file exported from one till can be
restored on another and vice versa.

Snapshot shape:
    {
        "version": 1,
        "exported_at": "2024-01-01T12:00:00+00:00",
        "orders": [...], "inventory": [...], ... every collection ...,
        "settings": {...},
        "printer_config": {...},
        "order_sequence": 42
    }

FAIL CLOSED:
    A restore validates the whole document before writing anything. Any
    problem leaves the live data exactly as it was.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

from core.entity_store import (
    COLLECTIONS,
    ORDER_SEQUENCE,
    ORDERS,
    RECORDS,
    EntityStore,
    default_record,
    encode,
)
from core.exceptions import InvalidSnapshotError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

SNAPSHOT_VERSION = 1

SnapshotInput = Union[bytes, str, Dict[str, Any]]


class BackupService:
    """Snapshot export, validation and atomic restore."""

    def __init__(self, store: EntityStore):
        self._store = store

    # =========================================================================
    # EXPORT
    # =========================================================================

    def create_snapshot(self) -> Dict[str, Any]:
        """
        Read every persisted key into one document.

        Taken under the store lock, so it never contains half of a batch.
        """
        with self._store.lock:
            snapshot: Dict[str, Any] = {
                "version": SNAPSHOT_VERSION,
                "exported_at": datetime.now(timezone.utc).isoformat(),
            }
            for collection in COLLECTIONS:
                snapshot[collection] = self._store.get(collection)
            for record in RECORDS:
                snapshot[record] = self._store.get_record(record)
            snapshot[ORDER_SEQUENCE] = self._store.get_counter(ORDER_SEQUENCE)
        return snapshot

    def export_snapshot(self) -> bytes:
        """Snapshot encoded as UTF-8 JSON (file export and cloud upload format)."""
        return encode(self.create_snapshot()).encode("utf-8")

    def export_to_file(self, path: Union[str, Path]) -> Path:
        """Write a backup file. Returns the path written."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        blob = self.export_snapshot()
        path.write_bytes(blob)
        logger.info(f"Backup written to {path} ({len(blob)} bytes)")
        return path

    # =========================================================================
    # RESTORE
    # =========================================================================

    def restore_snapshot(self, blob: SnapshotInput) -> bool:
        """
        Replace all local data with a snapshot.

        Returns:
            True if restored, False if the snapshot was rejected (nothing
            written)
        """
        try:
            self.restore_snapshot_or_raise(blob)
        except InvalidSnapshotError as e:
            logger.warning(f"Snapshot rejected: {e.reason}")
            return False
        return True

    def restore_snapshot_or_raise(self, blob: SnapshotInput) -> None:
        """
        Same as restore_snapshot() but reports why a snapshot was rejected.

        Raises:
            InvalidSnapshotError: Unparseable or wrongly shaped document
            StorageFailureError: The write failed (nothing committed)
        """
        document = self._parse(blob)
        values = self._validate(document)
        self._store.replace_all(values)

        logger.info(
            f"Snapshot restored: {len(values[ORDERS])} orders, "
            f"next order number {values[ORDER_SEQUENCE]}"
        )

    def import_from_file(self, path: Union[str, Path]) -> bool:
        path = Path(path)
        try:
            blob = path.read_bytes()
        except OSError as e:
            logger.error(f"Cannot read backup file {path}: {e}")
            return False
        return self.restore_snapshot(blob)

    def clear_all(self) -> None:
        """Every collection empty, every singleton back to its default."""
        self._store.clear()
        logger.warning("All local data cleared")

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _parse(blob: SnapshotInput) -> Dict[str, Any]:
        if isinstance(blob, dict):
            document = blob
        else:
            try:
                if isinstance(blob, bytes):
                    blob = blob.decode("utf-8")
                document = json.loads(blob)
            except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
                raise InvalidSnapshotError(f"not valid JSON ({e})")

        if not isinstance(document, dict):
            raise InvalidSnapshotError("document is not a JSON object")
        return document

    @staticmethod
    def _validate(document: Dict[str, Any]) -> Dict[str, Any]:
        """Build the full key -> value map to write, or raise."""
        version = document.get("version", SNAPSHOT_VERSION)
        if not isinstance(version, int) or isinstance(version, bool):
            raise InvalidSnapshotError(f"version is not an integer: {version!r}")
        if version > SNAPSHOT_VERSION:
            raise InvalidSnapshotError(
                f"version {version} is newer than supported version {SNAPSHOT_VERSION}"
            )

        values: Dict[str, Any] = {}

        for collection in COLLECTIONS:
            if collection not in document:
                raise InvalidSnapshotError(f"missing collection '{collection}'")
            items = document[collection]
            if not isinstance(items, list):
                raise InvalidSnapshotError(f"collection '{collection}' is not a list")
            values[collection] = items

        _validate_orders(values[ORDERS])

        for record in RECORDS:
            value = document.get(record)
            if value is None:
                value = default_record(record)
            elif not isinstance(value, dict):
                raise InvalidSnapshotError(f"record '{record}' is not an object")
            values[record] = value

        values[ORDER_SEQUENCE] = _restored_sequence(document.get(ORDER_SEQUENCE), values[ORDERS])
        return values


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_orders(orders: list) -> None:
    """Every order needs a string id and an integer order number."""
    for index, order in enumerate(orders):
        if not isinstance(order, dict):
            raise InvalidSnapshotError(f"orders[{index}] is not an object")
        if not isinstance(order.get("id"), str) or not order["id"]:
            raise InvalidSnapshotError(f"orders[{index}] has no string id")
        if not _is_integer(order.get("orderNumber")):
            raise InvalidSnapshotError(
                f"orders[{index}] orderNumber is not an integer: {order.get('orderNumber')!r}"
            )


def _restored_sequence(counter: Any, orders: list) -> int:
    """Counter to restore: never at or below a number already used."""
    if counter is None:
        counter = 1
    try:
        counter = int(counter)
    except (TypeError, ValueError, OverflowError):
        raise InvalidSnapshotError(f"order_sequence is not an integer: {counter!r}")

    highest = max((order["orderNumber"] for order in orders), default=0)
    return max(counter, highest + 1, 1)
