"""
Cloud sync service with thread-per-sync architecture.

The whole local database is mirrored to ONE Dropbox file. A push uploads a
fresh snapshot in overwrite mode; a pull downloads the file and restores it
over the local data. There is no merge: the last device to push wins.

COMPLETE THREAD ISOLATION:
    - Each background sync gets its own thread and its OWN DropboxClient
    - Sync threads never raise into the caller; failures become a status
    - SyncStatusTracker is the ONLY communication channel back to callers

Thread Safety:
    - Snapshots are taken under the entity store lock
    - SyncStatusTracker uses threading.Lock for every read and write
    - Overlapping pushes are allowed; each carries the full snapshot

Flow (push):
    1. Caller mutates local data (already committed)
    2. Caller calls sync_service.request_push()
    3. Sync thread checks credential and connectivity
    4. Sync thread exports a snapshot and uploads it
    5. Sync thread records the SyncResult in the tracker

Usage:
    sync_service = SyncService(store, backup_service, snapshot_path="/shinwari_pos_db.json")
    sync_service.start()                # one pull if enabled and online

    sync_service.request_push()         # fire and forget
    sync_service.status()               # {"status": "success", ...}

    sync_service.shutdown()
"""

from __future__ import annotations

import socket
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from core.cloud_client import (
    DEFAULT_API_URL,
    DEFAULT_CONTENT_URL,
    DropboxClient,
    normalize_token,
)
from core.entity_store import EntityStore
from core.exceptions import (
    MissingCredentialError,
    StorageFailureError,
    TransportFailureError,
)
from models.sync_result import SyncOperation, SyncOutcome, SyncResult, SyncStatus
from services.backup_service import BackupService
from logging_config import get_logger, get_sync_logger, set_thread_name


# Module logger
logger = get_logger(__name__)


def tcp_reachable(host: str, port: int = 443, timeout: float = 2.0) -> Callable[[], bool]:
    """
    Build a connectivity check that opens (and closes) a TCP connection.

    Returns:
        Callable returning True when the host is reachable
    """
    def is_online() -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    return is_online


def _interrupted(operation: SyncOperation) -> SyncResult:
    return SyncResult.create_failed(operation, f"{operation.value} interrupted by an unexpected error")


class SyncStatusTracker:
    """
    Thread-safe holder of the process-wide sync status.

    Sync threads WRITE here, routes and the UI READ from here.

    Thread Safety:
        - Uses threading.Lock for all operations
        - Counts in-flight runs; the status always reflects the latest outcome
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = SyncStatus.IDLE
        self._in_flight = 0
        self._last_result: Optional[SyncResult] = None
        self._last_error: Optional[str] = None
        self._last_success_at: Optional[datetime] = None

    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return self._status

    @property
    def last_result(self) -> Optional[SyncResult]:
        with self._lock:
            return self._last_result

    def begin(self) -> None:
        with self._lock:
            self._in_flight += 1
            self._status = SyncStatus.SYNCING

    def finish(self, result: SyncResult) -> None:
        """Record the outcome of one run started with begin()."""
        with self._lock:
            if result.outcome is not SyncOutcome.SKIPPED:
                self._in_flight = max(0, self._in_flight - 1)
            self._record(result)

    def record(self, result: SyncResult) -> None:
        """Record an outcome without ending an in-flight run."""
        with self._lock:
            self._record(result)

    def _record(self, result: SyncResult) -> None:
        # Caller holds the lock
        self._last_result = result
        if result.outcome is SyncOutcome.FAILED:
            self._last_error = result.message
        elif result.succeeded:
            self._last_error = None
            self._last_success_at = result.finished_at
        if result.status is not None:
            self._status = result.status

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "status": self._status.value,
                "in_flight": self._in_flight,
                "last_result": self._last_result.to_dict() if self._last_result else None,
                "last_error": self._last_error,
                "last_success_at": (
                    self._last_success_at.isoformat() if self._last_success_at else None
                ),
            }


class SyncService:
    """
    Push/pull of the whole local database to one cloud file.

    Credentials are read from the stored SystemSettings on every run, so a
    token saved from the settings screen takes effect immediately.

    Attributes:
        tracker: SyncStatusTracker with the latest status
    """

    def __init__(
        self,
        store: EntityStore,
        backup_service: BackupService,
        snapshot_path: str = "/shinwari_pos_db.json",
        api_url: str = DEFAULT_API_URL,
        content_url: str = DEFAULT_CONTENT_URL,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        is_online: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            store: Entity store (settings are read from here)
            backup_service: Snapshot export/restore
            snapshot_path: Path of the cloud copy inside Dropbox
            api_url: Dropbox RPC base URL
            content_url: Dropbox content base URL
            timeout_seconds: Per-request timeout
            transport: httpx transport override (tests)
            is_online: Connectivity check (defaults to a TCP connect to the content host)
        """
        self._store = store
        self._backup = backup_service
        self._snapshot_path = snapshot_path
        self._api_url = api_url
        self._content_url = content_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._is_online = is_online or tcp_reachable(httpx.URL(content_url).host)

        self._tracker = SyncStatusTracker()
        self._restore_listeners: List[Callable[[], None]] = []

        # Track active sync threads for cleanup
        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info(f"SyncService initialized (remote path {snapshot_path})")

    @property
    def tracker(self) -> SyncStatusTracker:
        return self._tracker

    def status(self) -> Dict[str, Any]:
        return self._tracker.to_dict()

    def add_restore_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback run after a pull replaced the local data."""
        self._restore_listeners.append(listener)

    # =========================================================================
    # SYNCHRONOUS OPERATIONS
    # =========================================================================

    def pull(self, sync_logger=None) -> SyncResult:
        """
        Replace local data with the cloud copy.

        Never raises for transport or restore problems; the outcome is
        returned and recorded in the tracker.
        """
        sync_logger = sync_logger or logger
        skipped = self._precheck(SyncOperation.PULL)
        if skipped is not None:
            return skipped

        self._tracker.begin()
        result: Optional[SyncResult] = None
        try:
            with self._create_client(sync_logger) as client:
                blob = client.download(self._snapshot_path)

            if blob is None:
                result = SyncResult.create_remote_missing()
            elif self._backup.restore_snapshot(blob):
                result = SyncResult.create_restored()
            else:
                result = SyncResult.create_failed(
                    SyncOperation.PULL, "Cloud copy is not a valid snapshot"
                )
        except (TransportFailureError, StorageFailureError, MissingCredentialError) as e:
            sync_logger.error(f"Pull failed: {e}")
            result = SyncResult.create_failed(SyncOperation.PULL, str(e))
        finally:
            # Every begin() is matched by exactly one finish()
            self._tracker.finish(result or _interrupted(SyncOperation.PULL))

        sync_logger.info(f"Pull finished: {result.outcome.value}")

        if result.outcome is SyncOutcome.RESTORED:
            self._notify_restored(sync_logger)

        return result

    def push(self, sync_logger=None) -> SyncResult:
        """
        Upload a fresh snapshot, overwriting the cloud copy.

        Never raises for transport problems; the outcome is returned and
        recorded in the tracker. Local data is never modified.
        """
        sync_logger = sync_logger or logger
        skipped = self._precheck(SyncOperation.PUSH)
        if skipped is not None:
            return skipped

        self._tracker.begin()
        result: Optional[SyncResult] = None
        try:
            blob = self._backup.export_snapshot()
            with self._create_client(sync_logger) as client:
                client.upload(self._snapshot_path, blob)
            result = SyncResult.create_uploaded(len(blob))
        except (TransportFailureError, StorageFailureError, MissingCredentialError) as e:
            sync_logger.error(f"Push failed: {e}")
            result = SyncResult.create_failed(SyncOperation.PUSH, str(e))
        finally:
            self._tracker.finish(result or _interrupted(SyncOperation.PUSH))

        sync_logger.info(f"Push finished: {result.outcome.value}")
        return result

    def test_connection(self, access_token: Optional[str]) -> str:
        """
        Check a token against the account endpoint.

        Returns:
            The account display name

        Raises:
            MissingCredentialError: Empty token
            TransportFailureError: Network failure or token rejected
        """
        token = normalize_token(access_token)
        if not token:
            raise MissingCredentialError()

        with self._create_client(logger, token) as client:
            account = client.get_current_account()

        name = account.get("name") or {}
        display_name = name.get("display_name") or account.get("email") or ""
        logger.info(f"Cloud connection verified for '{display_name}'")
        return display_name

    # =========================================================================
    # BACKGROUND OPERATIONS
    # =========================================================================

    def start(self) -> bool:
        """
        Startup pull when sync is enabled, a credential is set and the
        device is online.

        Returns:
            True if a pull was started
        """
        sync = self._store.get_settings().sync
        if not (sync.enabled and sync.has_credential):
            logger.info("Startup pull skipped: sync disabled or no credential")
            return False
        if not self._is_online():
            logger.info("Startup pull skipped: device offline")
            return False

        self.request_pull()
        return True

    def request_push(self) -> str:
        """Push in a background thread. Returns the sync id."""
        return self._spawn(SyncOperation.PUSH)

    def request_pull(self) -> str:
        """Pull in a background thread. Returns the sync id."""
        return self._spawn(SyncOperation.PULL)

    def is_busy(self) -> bool:
        with self._threads_lock:
            return any(t.is_alive() for t in self._active_threads.values())

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """
        Wait for in-flight sync threads.

        Args:
            timeout_per_thread: Max seconds to wait per thread
        """
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active sync threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} sync threads to complete...")

        for sync_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Sync thread {sync_id[:8]} did not complete in time")

        logger.info("Sync service shutdown complete")

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _spawn(self, operation: SyncOperation) -> str:
        sync_id = str(uuid.uuid4())

        thread = threading.Thread(
            target=self._sync_thread_main,
            args=(sync_id, operation),
            name=f"Sync-{operation.value}-{sync_id[:8]}",
            daemon=True,
        )

        with self._threads_lock:
            self._active_threads[sync_id] = thread

        thread.start()
        return sync_id

    def _sync_thread_main(self, sync_id: str, operation: SyncOperation) -> None:
        set_thread_name(f"Sync-{operation.value}-{sync_id[:8]}")
        sync_logger = get_sync_logger(operation.value, sync_id)

        try:
            if operation is SyncOperation.PUSH:
                self.push(sync_logger)
            else:
                self.pull(sync_logger)
        except Exception as e:
            # Nothing may escape a fire-and-forget thread. push()/pull() have
            # already ended the run, so only the message is recorded here.
            sync_logger.exception(f"Unexpected {operation.value} failure: {e}")
            self._tracker.record(SyncResult.create_failed(operation, str(e)))
        finally:
            with self._threads_lock:
                self._active_threads.pop(sync_id, None)

    def _notify_restored(self, sync_logger) -> None:
        # The restore is committed; a failing listener does not undo it
        for listener in list(self._restore_listeners):
            try:
                listener()
            except Exception as e:
                sync_logger.exception(f"Restore listener failed: {e}")

    def _precheck(self, operation: SyncOperation) -> Optional[SyncResult]:
        """Skipped result when there is no credential or no connectivity."""
        if not self._store.get_settings().sync.has_credential:
            result = SyncResult.create_skipped(operation, "No cloud access token configured")
        elif not self._is_online():
            result = SyncResult.create_skipped(operation, "Device is offline")
        else:
            return None

        logger.debug(f"{operation.value} skipped: {result.message}")
        self._tracker.finish(result)
        return result

    def _create_client(self, sync_logger, access_token: Optional[str] = None) -> DropboxClient:
        if access_token is None:
            access_token = self._store.get_settings().sync.access_token
        return DropboxClient(
            access_token,
            api_url=self._api_url,
            content_url=self._content_url,
            timeout=self._timeout,
            transport=self._transport,
            logger=sync_logger,
        )
