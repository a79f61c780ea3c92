"""
HTTP route tests.

Verifies:
- Unauthenticated requests return 401; employees are denied manager routes (403)
- Domain errors map to 400/404/409 with {"error", "details"?}
- Sale, receiving and import flows work end to end over HTTP
"""

import io

import pytest

from shoepos.models import InventoryImportBatch, Variant
from shoepos.services import sales_service
from shoepos.validation import ConflictError


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuthentication:

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/brands"),
            ("POST", "/api/sales"),
            ("POST", "/api/inventory/adjustments"),
            ("GET", "/api/purchasing/orders"),
            ("POST", "/api/imports/inventory/preview"),
            ("GET", "/api/reports/inventory/low-stock"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_login_and_logout(self, client, owner):
        resp = client.post("/api/auth/login", json={"email": "owner@shoepos.test", "password": "Password123!"})
        assert resp.status_code == 200
        token = resp.json["token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.get("/api/auth/me", headers=headers).json["user"]["role"] == "OWNER"
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_password(self, client, owner):
        resp = client.post("/api/auth/login", json={"email": "owner@shoepos.test", "password": "nope-nope"})
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/brands"),
            ("POST", "/api/inventory/initial"),
            ("POST", "/api/inventory/adjustments"),
            ("GET", "/api/purchasing/suppliers"),
            ("POST", "/api/imports/inventory/apply"),
            ("GET", "/api/reports/sales/daily"),
        ],
    )
    def test_employee_denied_manager_routes(self, client, employee_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=employee_headers, json={})
        assert resp.status_code == 403


# =============================================================================
# CATALOG AND STOCK
# =============================================================================


class TestCatalogAndStock:

    def test_catalogue_setup(self, client, owner_headers):
        brand = client.post("/api/brands", json={"name": "Nimbus"}, headers=owner_headers)
        assert brand.status_code == 201

        product = client.post(
            "/api/products",
            json={"brand_id": brand.json["brand"]["id"], "name": "Glide", "tags": ["road"]},
            headers=owner_headers,
        )
        assert product.status_code == 201

        variant = client.post(
            "/api/variants",
            json={"product_id": product.json["product"]["id"], "sku": "NG-1", "price_cents": 9900},
            headers=owner_headers,
        )
        assert variant.status_code == 201
        assert variant.json["variant"]["brand"]["name"] == "Nimbus"

        duplicate = client.post("/api/brands", json={"name": "Nimbus"}, headers=owner_headers)
        assert duplicate.status_code == 409

    def test_variant_lookups(self, client, owner_headers, variant):
        by_id = client.get(f"/api/variants/{variant.id}", headers=owner_headers)
        assert by_id.json["variant"]["on_hand"] == 0

        by_barcode = client.get("/api/variants/barcode/0000000000100", headers=owner_headers)
        assert by_barcode.json["variant"]["sku"] == "AR-100"

        by_sku = client.get("/api/variants/barcode/AR-100", headers=owner_headers)
        assert by_sku.json["variant"]["id"] == variant.id

        assert client.get("/api/variants/9999", headers=owner_headers).status_code == 404

    def test_initial_stock_and_adjustment(self, client, owner_headers, variant):
        resp = client.post(
            "/api/inventory/initial", json={"variant_id": variant.id, "quantity": 4}, headers=owner_headers
        )
        assert resp.status_code == 201
        assert resp.json["on_hand"] == 4

        again = client.post(
            "/api/inventory/initial", json={"variant_id": variant.id, "quantity": 4}, headers=owner_headers
        )
        assert again.status_code == 409

        too_many = client.post(
            "/api/inventory/adjustments",
            json={"variant_id": variant.id, "reason_code": "damaged", "quantity": 5},
            headers=owner_headers,
        )
        assert too_many.status_code == 400
        assert too_many.json["error"] == "Adjustment would reduce stock below zero"

        ok = client.post(
            "/api/inventory/adjustments",
            json={"variant_id": variant.id, "reason_code": "lost", "quantity": 1, "note": "Display pair"},
            headers=owner_headers,
        )
        assert ok.status_code == 201
        assert ok.json["adjustment"]["on_hand"] == 3

        ledger = client.get(f"/api/variants/{variant.id}/ledger?type=ADJUSTMENT", headers=owner_headers)
        assert ledger.status_code == 200
        assert len(ledger.json["entries"]) == 1

    def test_adjustment_on_duplicate_baselines_conflicts(
        self, client, owner_headers, variant_with_duplicate_baselines
    ):
        resp = client.post(
            "/api/inventory/adjustments",
            json={"variant_id": variant_with_duplicate_baselines.id, "reason_code": "damaged", "quantity": 1},
            headers=owner_headers,
        )
        assert resp.status_code == 409
        assert "more than one initial stock count" in resp.json["error"]

    def test_invalid_adjustment_reason(self, client, owner_headers, variant):
        resp = client.post(
            "/api/inventory/adjustments",
            json={"variant_id": variant.id, "reason_code": "stolen", "quantity": 1},
            headers=owner_headers,
        )
        assert resp.status_code == 400
        assert "reason_code" in resp.json["details"]


# =============================================================================
# SALES
# =============================================================================


class TestSales:

    def test_sale_and_receipt(self, client, employee_headers, variant):
        resp = client.post(
            "/api/sales",
            json={
                "items": [{"variant_id": variant.id, "quantity": 2, "discount_cents": 100}],
                "payments": [{"method": "cash", "amount_cents": 1000}, {"method": "card", "amount_cents": 930}],
                "sale_discount_cents": 50,
                "tax_cents": 80,
            },
            headers=employee_headers,
        )
        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["total_cents"] == 1930

        receipt = client.get(f"/api/sales/{sale['id']}/receipt", headers=employee_headers)
        assert receipt.status_code == 200
        assert receipt.json["receipt"]["totals"]["payment_total_cents"] == 1930

    def test_payment_mismatch(self, client, employee_headers, variant):
        resp = client.post(
            "/api/sales",
            json={
                "items": [{"variant_id": variant.id, "quantity": 1}],
                "payments": [{"method": "cash", "amount_cents": 999}],
            },
            headers=employee_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Payment breakdown must match the sale total"

    def test_unknown_variant(self, client, employee_headers, db_session):
        resp = client.post(
            "/api/sales",
            json={"items": [{"variant_id": 31337, "quantity": 1}], "payments": [{"method": "cash", "amount_cents": 0}]},
            headers=employee_headers,
        )
        assert resp.status_code == 404

    def test_conflict_maps_to_409(self, client, employee_headers, variant, monkeypatch):
        def conflicting_sale(*args, **kwargs):
            raise ConflictError("Record conflicts with existing data")

        monkeypatch.setattr(sales_service, "create_sale", conflicting_sale)

        resp = client.post(
            "/api/sales",
            json={
                "items": [{"variant_id": variant.id, "quantity": 1}],
                "payments": [{"method": "cash", "amount_cents": 1000}],
            },
            headers=employee_headers,
        )
        assert resp.status_code == 409
        assert resp.json == {"error": "Record conflicts with existing data"}


# =============================================================================
# PURCHASING
# =============================================================================


class TestPurchasing:

    def test_order_and_receive(self, client, owner_headers, variant):
        supplier = client.post("/api/purchasing/suppliers", json={"name": "Trail Supply Co"}, headers=owner_headers)
        assert supplier.status_code == 201

        order = client.post(
            "/api/purchasing/orders",
            json={
                "supplier_id": supplier.json["supplier"]["id"],
                "items": [{"variant_id": variant.id, "quantity_ordered": 5, "cost_cents": 600}],
            },
            headers=owner_headers,
        )
        assert order.status_code == 201
        order_id = order.json["order"]["id"]
        item_id = order.json["order"]["items"][0]["id"]

        over = client.post(
            f"/api/purchasing/orders/{order_id}/receive",
            json={"items": [{"item_id": item_id, "quantity_received": 9}]},
            headers=owner_headers,
        )
        assert over.status_code == 400

        received = client.post(
            f"/api/purchasing/orders/{order_id}/receive",
            json={"items": [{"item_id": item_id, "quantity_received": 5}]},
            headers=owner_headers,
        )
        assert received.status_code == 200
        assert received.json["order"]["status"] == "RECEIVED"

        stock = client.get(f"/api/variants/{variant.id}", headers=owner_headers)
        assert stock.json["variant"]["on_hand"] == 5

    def test_missing_order(self, client, owner_headers):
        resp = client.get("/api/purchasing/orders/404", headers=owner_headers)
        assert resp.status_code == 404


# =============================================================================
# IMPORTS
# =============================================================================


def _upload(data: bytes, name: str = "stock.csv") -> dict:
    return {"file": (io.BytesIO(data), name)}


class TestImports:

    CSV = b"Brand,Model,SKU,Qty\nAcme,Trail Runner,AR-100,50\n"

    def test_preview_then_apply(self, client, owner_headers):
        preview = client.post(
            "/api/imports/inventory/preview",
            data=_upload(self.CSV),
            headers=owner_headers,
            content_type="multipart/form-data",
        )
        assert preview.status_code == 200
        assert preview.json["summary"]["create"]["variants"] == 1

        applied = client.post(
            "/api/imports/inventory/apply",
            data=_upload(self.CSV),
            headers=owner_headers,
            content_type="multipart/form-data",
        )
        assert applied.status_code == 200
        assert applied.json["status"] == "COMPLETED"

        status = client.get(
            f"/api/imports/inventory/batches/{applied.json['batch_id']}", headers=owner_headers
        )
        assert status.status_code == 200
        assert status.json["status"] == "COMPLETED"
        assert status.json["original_file_name"] == "stock.csv"
        assert status.json["audit_count"] == 4

    def test_queued_apply_returns_202(self, app, client, owner_headers, monkeypatch):
        monkeypatch.setitem(app.config, "IMPORT_QUEUE_THRESHOLD", 0)
        resp = client.post(
            "/api/imports/inventory/apply",
            data=_upload(self.CSV),
            headers=owner_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 202
        assert resp.json["status"] == "QUEUED"

    def test_blocked_apply_returns_preview(self, client, owner_headers):
        data = b"brand,product,sku,qty\nAcme,Runner,A-1,5\nAcme,Runner,A-1,6\n"
        resp = client.post(
            "/api/imports/inventory/apply",
            data=_upload(data),
            headers=owner_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.json["preview"]["summary"]["blocking_issue_count"] >= 1
        assert Variant.query.count() == 0

    def test_missing_file(self, client, owner_headers):
        resp = client.post(
            "/api/imports/inventory/preview", data={}, headers=owner_headers, content_type="multipart/form-data"
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "file is required"

    def test_unreadable_csv(self, client, owner_headers):
        resp = client.post(
            "/api/imports/inventory/preview",
            data=_upload(b"foo,bar\n1,2\n"),
            headers=owner_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_sync_failure_returns_batch_id(self, client, db_session, owner_headers, monkeypatch):
        from shoepos.services import inventory_import_service

        def broken_chunk(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(inventory_import_service, "_apply_chunk", broken_chunk)
        resp = client.post(
            "/api/imports/inventory/apply",
            data=_upload(self.CSV),
            headers=owner_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 500
        batch = db_session.get(InventoryImportBatch, resp.json["batch_id"])
        assert batch.status == "FAILED"

    def test_unknown_batch(self, client, owner_headers):
        resp = client.get("/api/imports/inventory/batches/999", headers=owner_headers)
        assert resp.status_code == 404


# =============================================================================
# REPORTS
# =============================================================================


class TestReports:

    def test_daily_report(self, client, owner_headers):
        resp = client.get("/api/reports/sales/daily?startDate=2026-01-01&endDate=2026-01-31", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["days"] == []

    def test_bad_range(self, client, owner_headers):
        resp = client.get("/api/reports/sales/top-items?startDate=2026-02-01&endDate=2026-01-01", headers=owner_headers)
        assert resp.status_code == 400

    def test_low_stock_open_to_employees(self, client, employee_headers, variant):
        resp = client.get("/api/reports/inventory/low-stock", headers=employee_headers)
        assert resp.status_code == 200
        assert resp.json["variants"][0]["sku"] == "AR-100"
