"""
Typed access to every persisted business collection.

The entity store sits on top of the key-value medium: each collection is a
JSON array under its own key, each singleton record a JSON object, and the
order sequence a JSON integer.

Guarantees:
    - Reading a collection that was never written returns []
    - Reading a singleton that was never written returns its default record
    - put() replaces a whole collection; there are no partial writes
    - Writes inside batch() are committed together or not at all

THREAD SAFETY:
    A re-entrant lock guards every read and write, so a sync thread taking a
    snapshot never sees half of a main-thread batch.
"""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, TYPE_CHECKING

from .exceptions import StorageFailureError, ValidationFailedError
from .kv_store import SQLiteKeyValueStore

if TYPE_CHECKING:
    from models.settings import PrinterConfig, SystemSettings


# Collection keys (JSON arrays)
ORDERS = "orders"
INVENTORY = "inventory"
MENU = "menu"
CATEGORIES = "categories"
PURCHASES = "purchases"
TRANSACTIONS = "transactions"
EXPENSES = "expenses"
USERS = "users"
CUSTOMERS = "customers"

COLLECTIONS = (
    ORDERS,
    INVENTORY,
    MENU,
    CATEGORIES,
    PURCHASES,
    TRANSACTIONS,
    EXPENSES,
    USERS,
    CUSTOMERS,
)

# Singleton keys (JSON objects)
SETTINGS = "settings"
PRINTER_CONFIG = "printer_config"

RECORDS = (SETTINGS, PRINTER_CONFIG)

# Counter keys (JSON integers)
ORDER_SEQUENCE = "order_sequence"

COUNTERS = (ORDER_SEQUENCE,)

COUNTER_DEFAULTS: Dict[str, int] = {ORDER_SEQUENCE: 1}


def default_record(name: str) -> Dict[str, Any]:
    """Default value of a singleton record that was never written."""
    # Local import keeps core free of a module-level dependency on models
    from models.settings import PrinterConfig, SystemSettings

    if name == SETTINGS:
        return SystemSettings().to_dict()
    if name == PRINTER_CONFIG:
        return PrinterConfig().to_dict()
    raise KeyError(f"Unknown record: {name}")


def encode(value: Any) -> str:
    """Deterministic JSON encoding used for every stored value."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class EntityStore:
    """
    Collections, singleton records and counters over a key-value medium.

    Attributes:
        medium: The underlying SQLiteKeyValueStore
    """

    def __init__(self, medium: SQLiteKeyValueStore):
        self._medium = medium
        self._lock = threading.RLock()
        self._pending: Optional[Dict[str, str]] = None

    @property
    def medium(self) -> SQLiteKeyValueStore:
        return self._medium

    @property
    def lock(self) -> threading.RLock:
        """Held for the duration of a batch; sync threads take it to snapshot."""
        return self._lock

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def get(self, collection: str) -> List[Any]:
        """
        Read a whole collection.

        Returns:
            A fresh list (callers may mutate it); [] if never written
        """
        value = self._read(collection)
        return value if value is not None else []

    def put(self, collection: str, items: List[Any]) -> None:
        """
        Replace a whole collection.

        Raises:
            ValidationFailedError: If items is not a list
            StorageFailureError: If the medium rejects the write
        """
        if not isinstance(items, list):
            raise ValidationFailedError(
                f"Collection '{collection}' must be a list",
                {"collection": collection, "type": type(items).__name__},
            )
        self._write({collection: encode(items)})

    # =========================================================================
    # SINGLETON RECORDS
    # =========================================================================

    def get_record(self, name: str) -> Dict[str, Any]:
        value = self._read(name)
        return value if value is not None else default_record(name)

    def put_record(self, name: str, record: Dict[str, Any]) -> None:
        if not isinstance(record, dict):
            raise ValidationFailedError(
                f"Record '{name}' must be an object",
                {"record": name, "type": type(record).__name__},
            )
        self._write({name: encode(record)})

    # =========================================================================
    # COUNTERS
    # =========================================================================

    def get_counter(self, name: str, default: Optional[int] = None) -> int:
        value = self._read(name)
        if value is None:
            return default if default is not None else COUNTER_DEFAULTS.get(name, 1)
        return int(value)

    def put_counter(self, name: str, value: int) -> None:
        self._write({name: encode(int(value))})

    # =========================================================================
    # TYPED SINGLETONS
    # =========================================================================

    def get_settings(self) -> "SystemSettings":
        from models.settings import SystemSettings

        return SystemSettings.from_dict(self.get_record(SETTINGS))

    def put_settings(self, settings: "SystemSettings") -> None:
        self.put_record(SETTINGS, settings.to_dict())

    def get_printer_config(self) -> "PrinterConfig":
        from models.settings import PrinterConfig

        return PrinterConfig.from_dict(self.get_record(PRINTER_CONFIG))

    def put_printer_config(self, printer_config: "PrinterConfig") -> None:
        self.put_record(PRINTER_CONFIG, printer_config.to_dict())

    # =========================================================================
    # ATOMIC OPERATIONS
    # =========================================================================

    @contextmanager
    def batch(self) -> Iterator["EntityStore"]:
        """
        Group writes into one transaction.

        Reads inside the block see the buffered writes. If the block raises,
        nothing is written. Nested batches join the outermost one.

        Example:
            with store.batch():
                number = sequence.commit_next()
                store.put(ORDERS, [new_order] + store.get(ORDERS))
        """
        with self._lock:
            if self._pending is not None:
                yield self
                return

            self._pending = {}
            try:
                yield self
            except BaseException:
                self._pending = None
                raise

            pending, self._pending = self._pending, None
            self._medium.set_many(pending)

    def replace_all(self, values: Mapping[str, Any]) -> None:
        """
        Replace several collections/records/counters in one transaction.

        Args:
            values: Map of key to already-decoded value (list, dict or int)
        """
        with self.batch():
            for key, value in values.items():
                self._write({key: encode(value)})

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _read(self, key: str) -> Any:
        with self._lock:
            if self._pending is not None and key in self._pending:
                raw = self._pending[key]
            else:
                raw = self._medium.get(key)

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageFailureError(f"decode of '{key}'", e)

    def _write(self, values: Dict[str, str]) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending.update(values)
                return
            self._medium.set_many(values)

    def clear(self) -> None:
        """Remove every stored key; reads then return defaults."""
        with self._lock:
            if self._pending is not None:
                raise RuntimeError("clear() cannot run inside a batch")
            self._medium.delete_all()
