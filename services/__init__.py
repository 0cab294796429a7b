"""
Services layer for the POS terminal.

This module contains the business logic services:
- OrderService: Checkout, revisions and the order status machine
- BackupService: Snapshot export and atomic restore
- SyncService: Background push/pull of the snapshot to Dropbox
- ReportService: Sales, expense and purchase summaries
- PosTerminal: Owns the store and all services for one process

Thread Model:
    Main Thread (Flask)
    └── SyncService threads (one per push/pull request)

Each sync thread creates its own DropboxClient, ensuring complete thread
isolation.
"""

from .order_service import OrderService
from .backup_service import BackupService
from .sync_service import SyncService, SyncStatusTracker
from .report_service import ReportService, ReportRange
from .terminal import PosTerminal

__all__ = [
    "OrderService",
    "BackupService",
    "SyncService",
    "SyncStatusTracker",
    "ReportService",
    "ReportRange",
    "PosTerminal",
]
