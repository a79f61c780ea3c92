# Overview: Domain error types and request-payload validation for JSON endpoints.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level missing reference (variant, order, supplier, sale)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class IntegrityViolation(ConflictError):
    """
    Ledger or catalogue state that must never exist (duplicate initial
    counts, one SKU mapped to two products). Never resolved automatically.
    """


def error_body(exc: Exception) -> dict:
    body = {"error": str(exc)}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return body


# ---------------------------------------------------------------------------
# Field readers
# ---------------------------------------------------------------------------

class _FieldErrors:
    """Collects per-field messages so a caller sees every problem at once."""

    def __init__(self):
        self.errors: dict[str, str] = {}

    def add(self, path: str, message: str) -> None:
        self.errors.setdefault(path, message)

    def raise_if_any(self, message: str = "Invalid request") -> None:
        if self.errors:
            raise ValidationError(message, details=dict(self.errors))


def _read_int(
    payload: dict,
    key: str,
    errors: _FieldErrors,
    *,
    path: str | None = None,
    required: bool = True,
    minimum: int | None = None,
    maximum: int | None = None,
    default: int | None = None,
) -> int | None:
    path = path or key
    value = payload.get(key)
    if value is None:
        if required:
            errors.add(path, f"{key} is required")
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        errors.add(path, f"{key} must be an integer")
        return default
    if minimum is not None and value < minimum:
        errors.add(path, f"{key} must be at least {minimum}")
        return default
    if maximum is not None and value > maximum:
        errors.add(path, f"{key} must be at most {maximum}")
        return default
    return value


def _read_text(
    payload: dict,
    key: str,
    errors: _FieldErrors,
    *,
    path: str | None = None,
    required: bool = True,
    max_length: int = 255,
) -> str | None:
    path = path or key
    value = payload.get(key)
    if value is None:
        if required:
            errors.add(path, f"{key} is required")
        return None
    if not isinstance(value, str):
        errors.add(path, f"{key} must be a string")
        return None
    value = value.strip()
    if not value:
        if required:
            errors.add(path, f"{key} is required")
        return None
    if len(value) > max_length:
        errors.add(path, f"{key} must be at most {max_length} characters")
        return None
    return value


def _read_list(payload: dict, key: str, errors: _FieldErrors, *, min_items: int = 1) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        errors.add(key, f"{key} must be a list")
        return []
    if len(value) < min_items:
        errors.add(key, f"At least {min_items} {key} entry is required")
        return []
    return value


def _require_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SaleLineRequest:
    variant_id: int
    quantity: int
    unit_price_cents: int | None = None
    discount_cents: int | None = None


@dataclass(frozen=True)
class PaymentRequest:
    method: str
    amount_cents: int


@dataclass(frozen=True)
class SaleRequest:
    items: list[SaleLineRequest]
    payments: list[PaymentRequest]
    sale_discount_cents: int = 0
    tax_cents: int = 0


def parse_sale_request(payload: Any) -> SaleRequest:
    payload = _require_object(payload)
    errors = _FieldErrors()

    items = []
    for idx, raw in enumerate(_read_list(payload, "items", errors)):
        prefix = f"items[{idx}]"
        if not isinstance(raw, dict):
            errors.add(prefix, "item must be an object")
            continue
        variant_id = _read_int(raw, "variant_id", errors, path=f"{prefix}.variant_id", minimum=1)
        quantity = _read_int(raw, "quantity", errors, path=f"{prefix}.quantity", minimum=1)
        unit_price = _read_int(
            raw, "unit_price_cents", errors,
            path=f"{prefix}.unit_price_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS,
        )
        discount = _read_int(
            raw, "discount_cents", errors,
            path=f"{prefix}.discount_cents", required=False, minimum=0,
        )
        if variant_id is not None and quantity is not None:
            items.append(SaleLineRequest(variant_id, quantity, unit_price, discount))

    payments = []
    for idx, raw in enumerate(_read_list(payload, "payments", errors)):
        prefix = f"payments[{idx}]"
        if not isinstance(raw, dict):
            errors.add(prefix, "payment must be an object")
            continue
        method = _read_text(raw, "method", errors, path=f"{prefix}.method", max_length=32)
        amount = _read_int(raw, "amount_cents", errors, path=f"{prefix}.amount_cents", minimum=0)
        if method is not None and amount is not None:
            payments.append(PaymentRequest(method, amount))

    sale_discount = _read_int(payload, "sale_discount_cents", errors, required=False, minimum=0, default=0)
    tax = _read_int(payload, "tax_cents", errors, required=False, minimum=0, default=0)

    errors.raise_if_any()
    return SaleRequest(
        items=items,
        payments=payments,
        sale_discount_cents=sale_discount or 0,
        tax_cents=tax or 0,
    )


# ---------------------------------------------------------------------------
# Purchasing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PurchaseOrderLineRequest:
    variant_id: int
    quantity_ordered: int
    cost_cents: int | None = None


@dataclass(frozen=True)
class ReceiveLineRequest:
    item_id: int
    quantity_received: int
    cost_cents: int | None = None


def parse_supplier_payload(payload: Any, *, partial: bool = False) -> dict:
    """Returns only the supplier fields present in the payload."""
    payload = _require_object(payload)
    errors = _FieldErrors()
    fields: dict[str, Any] = {}

    if not partial or "name" in payload:
        fields["name"] = _read_text(payload, "name", errors)
    for key in ("contact_name", "email", "phone", "address"):
        if key in payload:
            fields[key] = _read_text(payload, key, errors, required=False)

    email = fields.get("email")
    if email and "@" not in email:
        errors.add("email", "Invalid email")

    errors.raise_if_any()
    return fields


def parse_purchase_order_request(payload: Any) -> tuple[int, list[PurchaseOrderLineRequest], str | None]:
    payload = _require_object(payload)
    errors = _FieldErrors()

    supplier_id = _read_int(payload, "supplier_id", errors, minimum=1)
    notes = _read_text(payload, "notes", errors, required=False, max_length=2000)

    lines = []
    for idx, raw in enumerate(_read_list(payload, "items", errors)):
        prefix = f"items[{idx}]"
        if not isinstance(raw, dict):
            errors.add(prefix, "item must be an object")
            continue
        variant_id = _read_int(raw, "variant_id", errors, path=f"{prefix}.variant_id", minimum=1)
        quantity = _read_int(raw, "quantity_ordered", errors, path=f"{prefix}.quantity_ordered", minimum=1)
        cost = _read_int(
            raw, "cost_cents", errors,
            path=f"{prefix}.cost_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS,
        )
        if variant_id is not None and quantity is not None:
            lines.append(PurchaseOrderLineRequest(variant_id, quantity, cost))

    errors.raise_if_any()
    return supplier_id, lines, notes


def parse_receive_request(payload: Any) -> list[ReceiveLineRequest]:
    payload = _require_object(payload)
    errors = _FieldErrors()

    lines = []
    for idx, raw in enumerate(_read_list(payload, "items", errors)):
        prefix = f"items[{idx}]"
        if not isinstance(raw, dict):
            errors.add(prefix, "item must be an object")
            continue
        item_id = _read_int(raw, "item_id", errors, path=f"{prefix}.item_id", minimum=1)
        quantity = _read_int(raw, "quantity_received", errors, path=f"{prefix}.quantity_received", minimum=1)
        cost = _read_int(
            raw, "cost_cents", errors,
            path=f"{prefix}.cost_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS,
        )
        if item_id is not None and quantity is not None:
            lines.append(ReceiveLineRequest(item_id, quantity, cost))

    errors.raise_if_any()
    return lines


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

ADJUSTMENT_REASON_CODES = ("damaged", "lost")


@dataclass(frozen=True)
class AdjustmentRequest:
    variant_id: int
    reason_code: str
    quantity: int
    note: str | None = field(default=None)


def parse_adjustment_request(payload: Any) -> AdjustmentRequest:
    payload = _require_object(payload)
    errors = _FieldErrors()

    variant_id = _read_int(payload, "variant_id", errors, minimum=1)
    quantity = _read_int(payload, "quantity", errors, minimum=1)
    reason_code = _read_text(payload, "reason_code", errors, max_length=32)
    if reason_code is not None and reason_code not in ADJUSTMENT_REASON_CODES:
        errors.add("reason_code", f"reason_code must be one of {', '.join(ADJUSTMENT_REASON_CODES)}")
    note = _read_text(payload, "note", errors, required=False, max_length=500)

    errors.raise_if_any()
    return AdjustmentRequest(variant_id, reason_code, quantity, note)


def parse_initial_stock_request(payload: Any) -> tuple[int, int]:
    payload = _require_object(payload)
    errors = _FieldErrors()
    variant_id = _read_int(payload, "variant_id", errors, minimum=1)
    quantity = _read_int(payload, "quantity", errors, minimum=0)
    errors.raise_if_any()
    return variant_id, quantity


def parse_catalog_payload(payload: Any, text_fields: tuple[str, ...], int_fields: tuple[str, ...] = ()) -> dict:
    """Generic reader for the small catalogue setup endpoints."""
    payload = _require_object(payload)
    errors = _FieldErrors()
    values: dict[str, Any] = {}
    for key in text_fields:
        required = key in ("name", "sku")
        values[key] = _read_text(payload, key, errors, required=required)
    for key in int_fields:
        required = key.endswith("_id")
        values[key] = _read_int(payload, key, errors, required=required, minimum=0 if not required else 1)
    errors.raise_if_any()
    return values
