"""
Sync result data models.

These models describe the outcome of one push or pull against the cloud
copy. Sync worker threads produce them; the status tracker keeps the latest
one for the status indicator.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class SyncStatus(Enum):
    """
    Process-wide sync status shown by the status indicator.

    Lifecycle:
        IDLE -> SYNCING -> (SUCCESS | ERROR | IDLE)
    """

    IDLE = "idle"
    """Nothing happening, or the last pull found no remote file yet."""

    SYNCING = "syncing"
    """A push or pull is in flight."""

    SUCCESS = "success"
    """The last operation completed."""

    ERROR = "error"
    """The last operation failed; local data is unaffected."""


class SyncOperation(Enum):
    PUSH = "push"
    PULL = "pull"


class SyncOutcome(Enum):
    """What one run actually did."""

    UPLOADED = "uploaded"
    RESTORED = "restored"
    REMOTE_MISSING = "remote_missing"
    """Pull found no remote file: first run, nothing restored."""

    SKIPPED = "skipped"
    """No credential or device offline: nothing attempted."""

    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    """
    Result of one sync run.

    Attributes:
        operation: PUSH or PULL
        outcome: What happened
        status: Status the tracker moves to (None leaves it unchanged)
        finished_at: When the run ended
        message: Human readable note or error text
    """

    operation: SyncOperation
    outcome: SyncOutcome
    status: Optional[SyncStatus]
    finished_at: datetime
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome in (SyncOutcome.UPLOADED, SyncOutcome.RESTORED, SyncOutcome.REMOTE_MISSING)

    @classmethod
    def create_uploaded(cls, byte_count: int) -> "SyncResult":
        return cls(
            operation=SyncOperation.PUSH,
            outcome=SyncOutcome.UPLOADED,
            status=SyncStatus.SUCCESS,
            finished_at=datetime.now(timezone.utc),
            message=f"Uploaded {byte_count} bytes",
        )

    @classmethod
    def create_restored(cls) -> "SyncResult":
        return cls(
            operation=SyncOperation.PULL,
            outcome=SyncOutcome.RESTORED,
            status=SyncStatus.SUCCESS,
            finished_at=datetime.now(timezone.utc),
            message="Local data replaced from cloud copy",
        )

    @classmethod
    def create_remote_missing(cls) -> "SyncResult":
        return cls(
            operation=SyncOperation.PULL,
            outcome=SyncOutcome.REMOTE_MISSING,
            status=SyncStatus.IDLE,
            finished_at=datetime.now(timezone.utc),
            message="No cloud copy yet; it will be created on the next push",
        )

    @classmethod
    def create_skipped(cls, operation: SyncOperation, reason: str) -> "SyncResult":
        return cls(
            operation=operation,
            outcome=SyncOutcome.SKIPPED,
            status=None,
            finished_at=datetime.now(timezone.utc),
            message=reason,
        )

    @classmethod
    def create_failed(cls, operation: SyncOperation, error_message: str) -> "SyncResult":
        return cls(
            operation=operation,
            outcome=SyncOutcome.FAILED,
            status=SyncStatus.ERROR,
            finished_at=datetime.now(timezone.utc),
            message=error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "outcome": self.outcome.value,
            "status": self.status.value if self.status else None,
            "finished_at": self.finished_at.isoformat(),
            "message": self.message,
        }
