"""
Core module for the POS terminal.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- kv_store: SQLite key-value medium lifecycle management
- entity_store: Typed collections, singleton records and counters
- sequence: Order number generator
- pricing: Pure order pricing
- cloud_client: Dropbox HTTP client for snapshot replication
"""

from .exceptions import (
    PosTerminalError,
    NotFoundError,
    ValidationFailedError,
    EmptyCartError,
    InvalidTransitionError,
    InvalidSnapshotError,
    MissingCredentialError,
    TransportFailureError,
    StorageFailureError,
)
from .kv_store import SQLiteKeyValueStore
from .entity_store import EntityStore
from .sequence import SequenceGenerator
from .cloud_client import DropboxClient

__all__ = [
    "PosTerminalError",
    "NotFoundError",
    "ValidationFailedError",
    "EmptyCartError",
    "InvalidTransitionError",
    "InvalidSnapshotError",
    "MissingCredentialError",
    "TransportFailureError",
    "StorageFailureError",
    "SQLiteKeyValueStore",
    "EntityStore",
    "SequenceGenerator",
    "DropboxClient",
]
