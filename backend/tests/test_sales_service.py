"""
Sale engine tests.

Verifies:
- Totals follow subtotal - discounts + tax with exact payment matching
- One SALE ledger entry per line, referencing the sale
- Validation failures write nothing
- A failure mid-transaction rolls the whole sale back
"""

import pytest

from shoepos.models import Sale, SaleItem, StockLedgerEntry
from shoepos.services import ledger_service, sales_service
from shoepos.validation import NotFoundError, ValidationError, parse_sale_request


def _sale(variant_id, *, paid=1930, **extra):
    payload = {
        "items": [{"variant_id": variant_id, "quantity": 2, "unit_price_cents": 1000, "discount_cents": 100}],
        "payments": [{"method": "cash", "amount_cents": paid}],
        "sale_discount_cents": 50,
        "tax_cents": 80,
    }
    payload.update(extra)
    return parse_sale_request(payload)


class TestCreateSale:

    def test_totals_and_ledger(self, db_session, variant, owner):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=10)

        sale = sales_service.create_sale(_sale(variant.id), recorded_by_id=owner.id)

        assert sale["subtotal_cents"] == 2000
        assert sale["discount_total_cents"] == 150
        assert sale["tax_total_cents"] == 80
        assert sale["total_cents"] == 1930
        assert sale["payments"] == [{"method": "cash", "amount_cents": 1930}]
        assert sale["items"][0]["sku"] == "AR-100"
        assert sale["items"][0]["line_total_cents"] == 1900

        entries = db_session.query(StockLedgerEntry).filter_by(type="SALE").all()
        assert len(entries) == 1
        assert entries[0].quantity_change == -2
        assert entries[0].reference == str(sale["id"])
        assert ledger_service.get_on_hand(variant.id) == 8

    def test_uses_variant_price_when_omitted(self, db_session, variant):
        request = parse_sale_request({
            "items": [{"variant_id": variant.id, "quantity": 1}],
            "payments": [{"method": "card", "amount_cents": 1000}],
        })
        sale = sales_service.create_sale(request)
        assert sale["total_cents"] == 1000

    def test_split_payments_must_match_exactly(self, db_session, variant):
        with pytest.raises(ValidationError, match="Payment breakdown must match the sale total"):
            sales_service.create_sale(_sale(variant.id, paid=1929))
        assert db_session.query(Sale).count() == 0
        assert db_session.query(StockLedgerEntry).count() == 0

    def test_split_payments_accepted(self, db_session, variant):
        request = _sale(variant.id, payments=[
            {"method": "cash", "amount_cents": 930},
            {"method": "card", "amount_cents": 1000},
        ])
        sale = sales_service.create_sale(request)
        assert len(sale["payments"]) == 2

    def test_unknown_variant(self, db_session):
        with pytest.raises(NotFoundError, match="Variant 4242 not found"):
            sales_service.create_sale(_sale(4242))

    def test_missing_price(self, db_session, product):
        from shoepos.models import Variant
        unpriced = Variant(product_id=product.id, sku="NO-PRICE")
        db_session.add(unpriced)
        db_session.commit()

        request = parse_sale_request({
            "items": [{"variant_id": unpriced.id, "quantity": 1}],
            "payments": [{"method": "cash", "amount_cents": 0}],
        })
        with pytest.raises(ValidationError, match="does not have a price set"):
            sales_service.create_sale(request)

    def test_line_discount_over_subtotal(self, db_session, variant):
        request = _sale(variant.id, items=[
            {"variant_id": variant.id, "quantity": 1, "unit_price_cents": 100, "discount_cents": 101},
        ])
        with pytest.raises(ValidationError, match="exceeds the line subtotal"):
            sales_service.create_sale(request)

    def test_sale_discount_over_subtotal(self, db_session, variant):
        request = _sale(variant.id, sale_discount_cents=5000)
        with pytest.raises(ValidationError, match="Discounts cannot exceed the subtotal"):
            sales_service.create_sale(request)

    def test_rollback_on_mid_transaction_failure(self, db_session, variant, second_variant, monkeypatch):
        calls = {"count": 0}
        real_append = sales_service.append_ledger_entry

        def failing_append(**kwargs):
            calls["count"] += 1
            if calls["count"] == 2:
                raise RuntimeError("disk full")
            return real_append(**kwargs)

        monkeypatch.setattr(sales_service, "append_ledger_entry", failing_append)
        request = parse_sale_request({
            "items": [
                {"variant_id": variant.id, "quantity": 1},
                {"variant_id": second_variant.id, "quantity": 1},
            ],
            "payments": [{"method": "cash", "amount_cents": 3500}],
        })

        with pytest.raises(RuntimeError):
            sales_service.create_sale(request)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockLedgerEntry).count() == 0


class TestRequestValidation:

    def test_reports_every_bad_field(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_sale_request({"items": [{"variant_id": "x", "quantity": 0}], "payments": []})
        details = exc_info.value.details
        assert "items[0].variant_id" in details
        assert "items[0].quantity" in details
        assert "payments" in details

    def test_rejects_boolean_quantity(self):
        with pytest.raises(ValidationError):
            parse_sale_request({
                "items": [{"variant_id": 1, "quantity": True}],
                "payments": [{"method": "cash", "amount_cents": 1}],
            })


class TestReceipt:

    def test_receipt_totals(self, app, db_session, variant):
        sale = sales_service.create_sale(_sale(variant.id))
        receipt = sales_service.get_sale_receipt(sale["id"])

        assert receipt["store"]["name"] == app.config["STORE_NAME"]
        assert receipt["items"][0]["product_name"] == "Trail Runner"
        assert receipt["items"][0]["brand_name"] == "Acme"
        assert receipt["totals"]["total_cents"] == 1930
        assert receipt["totals"]["payment_total_cents"] == 1930

    def test_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_sale_receipt(12345)
