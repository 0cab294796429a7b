"""
Sales, expense and purchase reports.

Read-only aggregation over the orders, expenses and purchases collections.
Held, cancelled and refunded orders never count as revenue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from core.entity_store import EXPENSES, ORDERS, PURCHASES, EntityStore
from core.exceptions import ValidationFailedError
from models.order import parse_order_status
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


class ReportRange(Enum):
    TODAY = "TODAY"
    WEEK = "WEEK"
    """Rolling seven days."""
    MONTH = "MONTH"
    YEAR = "YEAR"
    ALL = "ALL"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReportRange":
        if not value:
            return cls.MONTH
        try:
            return cls(value.upper())
        except ValueError:
            raise ValidationFailedError(f"Unknown report range: {value}", {"range": value})

    def start(self, now: datetime) -> Optional[datetime]:
        """Earliest timestamp included, or None for ALL."""
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if self is ReportRange.TODAY:
            return midnight
        if self is ReportRange.WEEK:
            return now - timedelta(days=7)
        if self is ReportRange.MONTH:
            return midnight.replace(day=1)
        if self is ReportRange.YEAR:
            return midnight.replace(month=1, day=1)
        return None


@dataclass
class DailyTotals:
    date: str
    sales: float = 0.0
    expenses: float = 0.0
    purchases: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "sales": self.sales,
            "expenses": self.expenses,
            "purchases": self.purchases,
        }


@dataclass
class ReportSummary:
    range: ReportRange
    total_sales: float = 0.0
    total_expenses: float = 0.0
    total_purchases: float = 0.0
    order_count: int = 0
    daily: List[DailyTotals] = field(default_factory=list)

    @property
    def net_profit(self) -> float:
        return self.total_sales - self.total_expenses - self.total_purchases

    def to_dict(self) -> Dict[str, Any]:
        return {
            "range": self.range.value,
            "totalSales": self.total_sales,
            "totalExpenses": self.total_expenses,
            "totalPurchases": self.total_purchases,
            "netProfit": self.net_profit,
            "orderCount": self.order_count,
            "daily": [d.to_dict() for d in self.daily],
        }


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO date/datetime string to an aware datetime (naive values are UTC)."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _amount(record: Dict[str, Any], key: str) -> float:
    try:
        return float(record.get(key) or 0.0)
    except (TypeError, ValueError):
        return 0.0


class ReportService:
    """Builds report summaries from the entity store."""

    def __init__(self, store: EntityStore):
        self._store = store

    def summary(self, report_range: ReportRange, now: Optional[datetime] = None) -> ReportSummary:
        now = now or datetime.now(timezone.utc)
        start = report_range.start(now)

        orders = [o for o in self._store.get(ORDERS) if self._is_revenue(o)]
        sales = list(self._in_range(orders, start))
        expenses = list(self._in_range(self._store.get(EXPENSES), start))
        purchases = list(self._in_range(self._store.get(PURCHASES), start))

        report = ReportSummary(range=report_range, order_count=len(sales))
        daily: Dict[str, DailyTotals] = {}

        def day(when: datetime) -> DailyTotals:
            key = when.astimezone(timezone.utc).date().isoformat()
            return daily.setdefault(key, DailyTotals(key))

        for when, order in sales:
            amount = _amount(order, "total")
            report.total_sales += amount
            day(when).sales += amount

        for when, expense in expenses:
            amount = _amount(expense, "amount")
            report.total_expenses += amount
            day(when).expenses += amount

        for when, purchase in purchases:
            amount = _amount(purchase, "totalCost")
            report.total_purchases += amount
            day(when).purchases += amount

        report.daily = [daily[key] for key in sorted(daily)]
        logger.debug(
            f"Report {report_range.value}: {report.order_count} orders, "
            f"sales {report.total_sales:.2f}"
        )
        return report

    @staticmethod
    def _is_revenue(order: Dict[str, Any]) -> bool:
        try:
            return parse_order_status(order.get("status", "PENDING")).counts_as_revenue
        except ValidationFailedError:
            return False

    @staticmethod
    def _in_range(records: Iterable[Dict[str, Any]], start: Optional[datetime]):
        for record in records:
            if not isinstance(record, dict):
                continue
            when = parse_timestamp(record.get("timestamp") or record.get("date"))
            if when is None:
                continue
            if start is None or when >= start:
                yield when, record
