"""
Custom exceptions for the POS terminal.

Exception Hierarchy:
    PosTerminalError (base)
    ├── NotFoundError             - Referenced order/user id is not in the store
    ├── ValidationFailedError     - Input rejected before any mutation
    │   ├── EmptyCartError          - Checkout attempted with no line items
    │   ├── InvalidTransitionError  - Status change not allowed by the transition table
    │   ├── InvalidSnapshotError    - Backup/sync document has the wrong shape
    │   └── MissingCredentialError  - Sync action without a cloud access token
    ├── TransportFailureError     - Network or cloud provider error (sync only)
    └── StorageFailureError       - Local database rejected a read/write

Usage:
    Local errors (NotFound, ValidationFailed, StorageFailure) are raised
    synchronously to the caller and block the attempted action.
    TransportFailureError is caught by the sync service and turned into a
    sync status value; it never reaches the mutation that triggered a push.
"""

from typing import Optional, Dict, Any


class PosTerminalError(Exception):
    """
    Base exception for all POS terminal errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotFoundError(PosTerminalError):
    """
    An operation referenced an id that is not in the local store.

    Raised before any mutation happens, so the store is unchanged.
    """

    def __init__(self, entity: str, entity_id: str):
        message = f"{entity.capitalize()} not found: {entity_id}"
        super().__init__(message, {"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


# =============================================================================
# VALIDATION ERRORS - Input rejected, nothing written
# =============================================================================

class ValidationFailedError(PosTerminalError):
    """Input was rejected before anything was written."""


class EmptyCartError(ValidationFailedError):
    """Checkout attempted with an empty cart."""

    def __init__(self, message: str = "Cannot place an order with an empty cart"):
        super().__init__(message, {"resolution": "Add at least one item to the cart"})


class InvalidTransitionError(ValidationFailedError):
    """
    Order status change is not permitted.

    Raised by the transition table when strict transitions are enabled,
    when resuming an order that is not held, and when trying to edit an
    order that is already in a terminal status.
    """

    def __init__(self, order_id: str, current: str, requested: str, reason: str = ""):
        message = f"Order {order_id} cannot move from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        details = {"order_id": order_id, "current": current, "requested": requested}
        super().__init__(message, details)
        self.order_id = order_id
        self.current = current
        self.requested = requested


class InvalidSnapshotError(ValidationFailedError):
    """
    A backup or sync document could not be restored.

    The live data is left untouched whenever this is raised.
    """

    def __init__(self, reason: str):
        super().__init__(f"Invalid snapshot: {reason}", {"reason": reason})
        self.reason = reason


class MissingCredentialError(ValidationFailedError):
    """A sync action was requested without a cloud access token."""

    def __init__(self, message: str = "Dropbox access token is not configured"):
        super().__init__(message, {"resolution": "Enter an access token in sync settings"})


# =============================================================================
# INFRASTRUCTURE ERRORS
# =============================================================================

class TransportFailureError(PosTerminalError):
    """
    Network or remote provider failure during pull, push or connectivity test.

    Carries the HTTP status code when the provider answered at all.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        details: Dict[str, Any] = {"operation": operation}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"Cloud {operation} failed: {message}", details)
        self.operation = operation
        self.status_code = status_code


class StorageFailureError(PosTerminalError):
    """
    The local durable medium rejected a read or write.

    Fatal to the current operation and never retried automatically.
    """

    def __init__(self, operation: str, error: Exception):
        super().__init__(
            f"Local storage {operation} failed: {error}",
            {"operation": operation, "resolution": "Check disk space and database file permissions"},
        )
        self.operation = operation
