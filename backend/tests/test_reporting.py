"""
Reporting and report cache tests.

Verifies:
- ReportCache expiry, prefix invalidation, and non-positive TTL
- Reports reflect sales and stock, and are invalidated by new movements
"""

import pytest

from shoepos.services import ledger_service, reporting_service, sales_service
from shoepos.services.report_cache import ReportCache
from shoepos.time_utils import utcnow
from shoepos.validation import ValidationError, parse_sale_request


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestReportCache:

    def test_entries_expire(self):
        clock = FakeClock()
        cache = ReportCache(clock=clock)
        cache.set("reports:a", {"v": 1}, 10)
        assert cache.get("reports:a") == {"v": 1}

        clock.now += 10
        assert cache.get("reports:a") is None

    def test_prefix_invalidation(self):
        cache = ReportCache(clock=FakeClock())
        cache.set("reports:a", 1, 60)
        cache.set("reports:b", 2, 60)
        cache.set("other:c", 3, 60)

        assert cache.invalidate("reports:") == 2
        assert cache.get("reports:a") is None
        assert cache.get("other:c") == 3

    def test_zero_ttl_is_not_stored(self):
        cache = ReportCache(clock=FakeClock())
        cache.set("reports:a", 1, 0)
        assert cache.get("reports:a") is None


def _sell(variant_id, quantity, unit_price=1000):
    return sales_service.create_sale(parse_sale_request({
        "items": [{"variant_id": variant_id, "quantity": quantity, "unit_price_cents": unit_price}],
        "payments": [{"method": "cash", "amount_cents": quantity * unit_price}],
    }))


class TestReports:

    def test_daily_totals(self, db_session, variant):
        _sell(variant.id, 2)
        _sell(variant.id, 1)
        today = utcnow().date()

        report = reporting_service.daily_sales_totals(today, today)
        assert len(report["days"]) == 1
        day = report["days"][0]
        assert day["sale_count"] == 2
        assert day["gross_sales_cents"] == 3000
        assert day["net_sales_cents"] == 3000

    def test_top_items_order_and_invalidation(self, db_session, variant, second_variant):
        _sell(variant.id, 1)
        _sell(second_variant.id, 3, unit_price=2500)
        today = utcnow().date()

        report = reporting_service.top_selling_items(today, today, 10)
        assert [item["sku"] for item in report["items"]] == ["AR-101", "AR-100"]

        # A new sale must not be hidden by the cached result
        _sell(variant.id, 5)
        report = reporting_service.top_selling_items(today, today, 10)
        assert [item["sku"] for item in report["items"]] == ["AR-100", "AR-101"]
        assert report["items"][0]["quantity_sold"] == 6

    def test_top_brands(self, db_session, variant, second_variant):
        _sell(variant.id, 1)
        _sell(second_variant.id, 1, unit_price=2500)
        today = utcnow().date()

        report = reporting_service.top_selling_brands(today, today, 5)
        assert report["brands"] == [{
            "brand_id": variant.product.brand_id,
            "brand_name": "Acme",
            "quantity_sold": 2,
            "gross_sales_cents": 3500,
            "discount_total_cents": 0,
            "net_sales_cents": 3500,
        }]

    def test_low_stock(self, db_session, variant, second_variant):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=20)
        ledger_service.record_initial_count(variant_id=second_variant.id, quantity=3)

        report = reporting_service.low_stock(5)
        assert [v["sku"] for v in report["variants"]] == ["AR-101"]
        assert report["variants"][0]["on_hand"] == 3

    def test_variant_without_entries_counts_as_zero(self, db_session, variant):
        report = reporting_service.low_stock(0)
        assert report["variants"][0]["on_hand"] == 0

    def test_invalid_ranges(self, app, db_session):
        with pytest.raises(ValidationError):
            reporting_service.resolve_date_range("2026-02-01", "2026-01-01")
        with pytest.raises(ValidationError):
            reporting_service.resolve_date_range("yesterday", None)
        with pytest.raises(ValidationError):
            reporting_service.resolve_limit(0)
        assert reporting_service.resolve_limit(500) == app.config["REPORT_MAX_TOP_LIMIT"]
