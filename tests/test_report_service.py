"""
Unit tests for report aggregation.
"""

from datetime import datetime, timezone

import pytest

from core.entity_store import EXPENSES, ORDERS, PURCHASES, EntityStore
from core.exceptions import ValidationFailedError
from core.kv_store import SQLiteKeyValueStore
from services.report_service import ReportRange, ReportService, parse_timestamp

NOW = datetime(2024, 3, 15, 18, 0, tzinfo=timezone.utc)


# Fixtures

@pytest.fixture
def store():
    kv = SQLiteKeyValueStore(":memory:")
    kv.initialize()
    store = EntityStore(kv)
    store.put(ORDERS, [
        {"id": "a", "status": "COMPLETED", "total": 1000.0, "timestamp": "2024-03-15T10:00:00+00:00"},
        {"id": "b", "status": "PENDING", "total": 500.0, "timestamp": "2024-03-14T10:00:00+00:00"},
        {"id": "c", "status": "HELD", "total": 700.0, "timestamp": "2024-03-15T11:00:00+00:00"},
        {"id": "d", "status": "CANCELLED", "total": 300.0, "timestamp": "2024-03-15T12:00:00+00:00"},
        {"id": "e", "status": "REFUNDED", "total": 200.0, "timestamp": "2024-03-15T13:00:00+00:00"},
        {"id": "f", "status": "COMPLETED", "total": 400.0, "timestamp": "2024-01-05T10:00:00+00:00"},
    ])
    store.put(EXPENSES, [
        {"id": "x1", "amount": 150.0, "date": "2024-03-15"},
        {"id": "x2", "amount": 50.0, "date": "2023-12-31"},
    ])
    store.put(PURCHASES, [
        {"id": "p1", "totalCost": 300.0, "date": "2024-03-14T09:00:00Z"},
    ])
    yield store
    kv.cleanup()


@pytest.fixture
def reports(store):
    return ReportService(store)


class TestSummary:

    def test_month_excludes_non_revenue_orders(self, reports):
        summary = reports.summary(ReportRange.MONTH, now=NOW)

        assert summary.order_count == 2
        assert summary.total_sales == 1500.0
        assert summary.total_expenses == 150.0
        assert summary.total_purchases == 300.0
        assert summary.net_profit == 1050.0

    def test_today(self, reports):
        summary = reports.summary(ReportRange.TODAY, now=NOW)

        assert summary.total_sales == 1000.0
        assert summary.total_purchases == 0

    def test_year(self, reports):
        assert reports.summary(ReportRange.YEAR, now=NOW).total_sales == 1900.0

    def test_all_includes_everything(self, reports):
        summary = reports.summary(ReportRange.ALL, now=NOW)

        assert summary.total_sales == 1900.0
        assert summary.total_expenses == 200.0

    def test_daily_breakdown_sorted(self, reports):
        summary = reports.summary(ReportRange.MONTH, now=NOW)

        assert [d.to_dict() for d in summary.daily] == [
            {"date": "2024-03-14", "sales": 500.0, "expenses": 0.0, "purchases": 300.0},
            {"date": "2024-03-15", "sales": 1000.0, "expenses": 150.0, "purchases": 0.0},
        ]

    def test_to_dict_uses_wire_keys(self, reports):
        data = reports.summary(ReportRange.MONTH, now=NOW).to_dict()

        assert data["range"] == "MONTH"
        assert data["netProfit"] == 1050.0
        assert data["orderCount"] == 2


class TestReportRange:

    def test_parse_defaults_to_month(self):
        assert ReportRange.parse(None) is ReportRange.MONTH

    def test_parse_is_case_insensitive(self):
        assert ReportRange.parse("week") is ReportRange.WEEK

    def test_parse_unknown(self):
        with pytest.raises(ValidationFailedError):
            ReportRange.parse("DECADE")

    def test_week_is_rolling(self):
        start = ReportRange.WEEK.start(NOW)
        assert start == datetime(2024, 3, 8, 18, 0, tzinfo=timezone.utc)


class TestParseTimestamp:

    def test_naive_is_utc(self):
        assert parse_timestamp("2024-03-15T10:00:00").tzinfo is timezone.utc

    def test_z_suffix(self):
        assert parse_timestamp("2024-03-15T10:00:00Z") == datetime(2024, 3, 15, 10, tzinfo=timezone.utc)

    def test_garbage_is_none(self):
        assert parse_timestamp("yesterday") is None
