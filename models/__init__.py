"""
Data models for the POS terminal.

This module contains dataclasses for:
- Order, LineItem, OrderContext: placed orders and their cart lines
- SystemSettings, PrinterConfig: singleton configuration records
- SyncResult, SyncStatus: outcome of cloud pushes/pulls

Every persisted model converts to and from the camelCase snapshot wire
format with to_dict()/from_dict().
"""

from .order import (
    Addon,
    LineItem,
    Order,
    OrderContext,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Variation,
)
from .settings import PrinterConfig, SyncSettings, SystemSettings
from .sync_result import SyncOperation, SyncOutcome, SyncResult, SyncStatus

__all__ = [
    # Order models
    "Addon",
    "LineItem",
    "Order",
    "OrderContext",
    "OrderStatus",
    "OrderType",
    "PaymentMethod",
    "Variation",
    # Settings models
    "PrinterConfig",
    "SyncSettings",
    "SystemSettings",
    # Sync models
    "SyncOperation",
    "SyncOutcome",
    "SyncResult",
    "SyncStatus",
]
