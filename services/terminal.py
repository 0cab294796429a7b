"""
POS terminal coordinator.

One PosTerminal owns everything a till process needs: the local database,
the order sequence, the order/backup/report services and the sync engine.
Routes and other callers go through it instead of touching the store.

Every mutation that changes durable state is written first and then, when
sync is enabled, followed by a background push. The push never blocks or
fails the mutation.

Usage:
    terminal = PosTerminal.from_config(app.config)
    terminal.start()

    order = terminal.orders.create_order(...)
    terminal.put_collection("menu", menu_items)

    terminal.shutdown()
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from core.cloud_client import normalize_token
from core.entity_store import COLLECTIONS, ORDERS, USERS, EntityStore
from core.exceptions import NotFoundError, ValidationFailedError
from core.kv_store import SQLiteKeyValueStore
from core.sequence import SequenceGenerator
from models.settings import PrinterConfig, SystemSettings
from services.backup_service import BackupService, SnapshotInput
from services.order_service import OrderService
from services.report_service import ReportRange, ReportService, ReportSummary
from services.sync_service import SyncService, tcp_reachable
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

DEFAULT_CASHIER = "Admin"


class PosTerminal:
    """
    Top-level owner of the store and services for one process.

    Attributes:
        store: EntityStore
        orders: OrderService
        backup: BackupService
        sync: SyncService
        reports: ReportService
    """

    def __init__(
        self,
        medium: SQLiteKeyValueStore,
        sync_factory: Callable[[EntityStore, BackupService], SyncService],
        strict_transitions: bool = False,
        admin_reset_pin: str = "",
    ):
        """
        Args:
            medium: Initialized key-value medium
            sync_factory: Builds the SyncService for this terminal
            strict_transitions: Use the forward-only order status table
            admin_reset_pin: PIN required by clear_all_data() (empty disables it)
        """
        self._medium = medium
        self._admin_reset_pin = admin_reset_pin

        self.store = EntityStore(medium)
        self.backup = BackupService(self.store)
        self.sync = sync_factory(self.store, self.backup)
        self.reports = ReportService(self.store)
        self.orders = OrderService(
            self.store,
            SequenceGenerator(self.store),
            on_change=self._changed,
            strict_transitions=strict_transitions,
        )
        self.sync.add_restore_listener(self._restored)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        transport: Optional[httpx.BaseTransport] = None,
        is_online: Optional[Callable[[], bool]] = None,
    ) -> "PosTerminal":
        """
        Build a terminal from configuration values.

        Args:
            config: Mapping of config keys (a Flask app.config)
            transport: httpx transport override (tests)
            is_online: Connectivity check override (tests)

        Raises:
            StorageFailureError: The local database cannot be opened
        """
        medium = SQLiteKeyValueStore(config["DATABASE_PATH"], logger=get_logger("core.kv_store"))
        medium.initialize()

        connectivity = is_online or tcp_reachable(
            config["CONNECTIVITY_CHECK_HOST"],
            timeout=config["CONNECTIVITY_CHECK_TIMEOUT_SECONDS"],
        )

        def sync_factory(store: EntityStore, backup: BackupService) -> SyncService:
            return SyncService(
                store,
                backup,
                snapshot_path=config["DROPBOX_SNAPSHOT_PATH"],
                api_url=config["DROPBOX_API_URL"],
                content_url=config["DROPBOX_CONTENT_URL"],
                timeout_seconds=config["SYNC_TIMEOUT_SECONDS"],
                transport=transport,
                is_online=connectivity,
            )

        return cls(
            medium,
            sync_factory,
            strict_transitions=config["STRICT_ORDER_TRANSITIONS"],
            admin_reset_pin=config["ADMIN_RESET_PIN"],
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Startup pull (if enabled, credentialed and online)."""
        self.sync.start()

    def shutdown(self) -> None:
        """Wait for sync threads, then close the database. Safe to call twice."""
        self.sync.shutdown()
        self._medium.cleanup()

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def get_collection(self, name: str) -> List[Any]:
        self._check_collection(name)
        return self.store.get(name)

    def put_collection(self, name: str, items: List[Any]) -> None:
        """
        Replace a satellite collection (menu, inventory, expenses, ...).

        Raises:
            ValidationFailedError: Unknown collection, orders, or not a list
        """
        self._check_collection(name)
        if name == ORDERS:
            raise ValidationFailedError(
                "Orders can only be changed through the order operations",
                {"collection": name},
            )
        self.store.put(name, items)
        logger.info(f"Collection '{name}' replaced ({len(items)} items)")
        self._changed()

    # =========================================================================
    # SINGLETONS
    # =========================================================================

    def get_settings(self) -> SystemSettings:
        return self.store.get_settings()

    def update_settings(self, settings: SystemSettings) -> SystemSettings:
        if settings.tax_rate < 0 or settings.service_charge_rate < 0:
            raise ValidationFailedError("Tax and service-charge rates cannot be negative")
        self.store.put_settings(settings)
        logger.info("System settings updated")
        self._changed()
        return settings

    def get_printer_config(self) -> PrinterConfig:
        return self.store.get_printer_config()

    def update_printer_config(self, printer_config: PrinterConfig) -> PrinterConfig:
        self.store.put_printer_config(printer_config)
        logger.info("Printer configuration updated")
        self._changed()
        return printer_config

    # =========================================================================
    # IDENTITY
    # =========================================================================

    def resolve_cashier(self, user_id: Optional[str]) -> str:
        """
        Display name of the user placing an order.

        Raises:
            NotFoundError: user_id given but not in the users collection
        """
        if not user_id:
            return DEFAULT_CASHIER
        for user in self.store.get(USERS):
            if isinstance(user, dict) and str(user.get("id")) == str(user_id):
                return user.get("name") or user.get("username") or DEFAULT_CASHIER
        raise NotFoundError("user", str(user_id))

    # =========================================================================
    # SYNC / BACKUP
    # =========================================================================

    def connect_cloud(self, access_token: Optional[str]) -> str:
        """
        Verify a token; on success store it and enable sync.

        Returns:
            Account display name

        Raises:
            MissingCredentialError: Empty token
            TransportFailureError: Token rejected or network failure
        """
        display_name = self.sync.test_connection(access_token)

        settings = self.store.get_settings()
        settings.sync.enabled = True
        settings.sync.access_token = normalize_token(access_token)
        self.store.put_settings(settings)
        logger.info(f"Cloud sync enabled for '{display_name}'")
        self._changed()
        return display_name

    def restore_backup(self, blob: SnapshotInput) -> None:
        """
        Replace all local data with a backup file.

        Raises:
            InvalidSnapshotError: Backup rejected (nothing written)
        """
        self.backup.restore_snapshot_or_raise(blob)
        self._changed()

    def clear_all_data(self, pin: str) -> None:
        """
        Wipe every collection and reset singletons.

        Raises:
            ValidationFailedError: Wrong PIN, or no PIN configured
        """
        if not self._admin_reset_pin or pin != self._admin_reset_pin:
            raise ValidationFailedError("Invalid admin PIN", {"resolution": "Check ADMIN_RESET_PIN"})
        self.backup.clear_all()
        self._changed()

    def report(self, range_name: Optional[str]) -> ReportSummary:
        return self.reports.summary(ReportRange.parse(range_name))

    def health(self) -> Dict[str, Any]:
        return {
            "database": self._medium.database_path,
            "database_open": self._medium.is_initialized,
            "next_order_number": self.orders.peek_next_order_number(),
            "sync": self.sync.status(),
        }

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _changed(self) -> None:
        if self.store.get_settings().sync.enabled:
            self.sync.request_push()

    def _restored(self) -> None:
        logger.info(
            f"Local data replaced from cloud; next order number "
            f"{self.orders.peek_next_order_number()}"
        )

    @staticmethod
    def _check_collection(name: str) -> None:
        if name not in COLLECTIONS:
            raise NotFoundError("collection", name)
