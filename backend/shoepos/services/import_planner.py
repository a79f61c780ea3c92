# Overview: Read-only reconciliation of parsed inventory rows against the catalogue and ledger.

"""
Inventory Import Planner

WHY: Preview and apply must agree on what a file will do. Planning runs
against a snapshot of the catalogue and stock state, mutates nothing, and
produces one RowPlan per CSV row plus a summary. Apply executes exactly
those plans.

DESIGN:
- Context loading is set-based: one query per entity type for the whole file
- Brands key on lower(name); products on "brandKey::lower(name)";
  variants on lower(sku)
- A projected state per SKU follows the file top to bottom, so a repeated
  SKU only plans the change that is still outstanding after earlier rows
- A row is blocking iff it has an error issue; blocking rows plan SKIP only
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Brand, Product, Variant
from .import_parser import ImportRow
from .ledger_service import VariantStockState, load_stock_states


ACTION_CREATE_BRAND = "CREATE_BRAND"
ACTION_CREATE_PRODUCT = "CREATE_PRODUCT"
ACTION_CREATE_VARIANT = "CREATE_VARIANT"
ACTION_UPDATE_VARIANT = "UPDATE_VARIANT"
ACTION_ADJUST_STOCK = "ADJUST_STOCK"
ACTION_SKIP = "SKIP"

ISSUE_DUPLICATE_IN_FILE = "DUPLICATE_IN_FILE"
ISSUE_CONFLICTING_RECORD = "CONFLICTING_RECORD"
ISSUE_INVALID_FIELD = "INVALID_FIELD"

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

# Catalogue fields an import row may change on an existing variant
UPDATABLE_FIELDS = ("size", "color", "barcode", "price_cents")


def brand_key_for(name: str) -> str:
    return name.strip().lower()


def product_key_for(brand_key: str, name: str) -> str:
    return f"{brand_key}::{name.strip().lower()}"


def sku_key_for(sku: str) -> str:
    return sku.strip().lower()


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExistingVariant:
    id: int
    sku: str
    product_id: int
    product_name: str
    brand_id: int
    brand_name: str
    size: str | None
    color: str | None
    barcode: str | None
    price_cents: int | None


@dataclass
class ImportContext:
    brands: dict[str, tuple[int, str]] = field(default_factory=dict)
    products: dict[str, tuple[int, str]] = field(default_factory=dict)
    variants: dict[str, ExistingVariant] = field(default_factory=dict)
    stocks: dict[int, VariantStockState] = field(default_factory=dict)
    # barcode -> SKU of the variant that already carries it
    barcodes: dict[str, str] = field(default_factory=dict)

    def product_lookup(self, brand_id: int, product_name: str) -> tuple[int, str] | None:
        return self.products.get(f"{brand_id}::{product_name.strip().lower()}")


def load_import_context(rows: Iterable[ImportRow]) -> ImportContext:
    """
    Snapshot the catalogue rows the file refers to.

    Five set-based reads regardless of file size: brands, products of the
    matched brands, variants by SKU (joined to product and brand), variants
    by barcode, and one grouped ledger aggregate for the matched variants.
    """
    rows = list(rows)
    context = ImportContext()

    brand_keys = {brand_key_for(r.brand_name) for r in rows if r.brand_name.strip()}
    product_keys = {r.product_name.strip().lower() for r in rows if r.product_name.strip()}
    sku_keys = {sku_key_for(r.sku) for r in rows if r.sku.strip()}
    barcodes = {r.barcode for r in rows if r.barcode}

    if brand_keys:
        for brand in db.session.query(Brand).filter(func.lower(Brand.name).in_(brand_keys)).all():
            context.brands[brand.name.lower()] = (brand.id, brand.name)

    matched_brand_ids = [brand_id for brand_id, _ in context.brands.values()]
    if matched_brand_ids and product_keys:
        products = (
            db.session.query(Product)
            .filter(Product.brand_id.in_(matched_brand_ids))
            .filter(func.lower(Product.name).in_(product_keys))
            .all()
        )
        for product in products:
            context.products[f"{product.brand_id}::{product.name.lower()}"] = (product.id, product.name)

    if sku_keys:
        variant_rows = (
            db.session.query(Variant, Product, Brand)
            .join(Product, Variant.product_id == Product.id)
            .join(Brand, Product.brand_id == Brand.id)
            .filter(func.lower(Variant.sku).in_(sku_keys))
            .all()
        )
        for variant, product, brand in variant_rows:
            context.variants[variant.sku.lower()] = ExistingVariant(
                id=variant.id,
                sku=variant.sku,
                product_id=product.id,
                product_name=product.name,
                brand_id=brand.id,
                brand_name=brand.name,
                size=variant.size,
                color=variant.color,
                barcode=variant.barcode,
                price_cents=variant.price_cents,
            )

    if barcodes:
        owners = (
            db.session.query(Variant.barcode, Variant.sku)
            .filter(Variant.barcode.in_(barcodes))
            .all()
        )
        for barcode, sku in owners:
            context.barcodes[barcode] = sku

    context.stocks = load_stock_states(v.id for v in context.variants.values())
    return context


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

@dataclass
class ImportIssue:
    type: str
    severity: str
    message: str

    def to_dict(self) -> dict:
        return {"type": self.type, "severity": self.severity, "message": self.message}


@dataclass
class BrandPlan:
    key: str
    name: str
    existing_id: int | None = None

    @property
    def create(self) -> bool:
        return self.existing_id is None


@dataclass
class ProductPlan:
    key: str
    brand_key: str
    name: str
    existing_id: int | None = None
    tags: tuple[str, ...] = ()

    @property
    def create(self) -> bool:
        return self.existing_id is None


@dataclass
class VariantPlan:
    key: str
    sku: str
    product_key: str
    existing: ExistingVariant | None = None

    @property
    def create(self) -> bool:
        return self.existing is None


@dataclass
class RowPlan:
    row: ImportRow
    brand_key: str
    product_key: str
    sku_key: str
    actions: list[str] = field(default_factory=list)
    issues: list[ImportIssue] = field(default_factory=list)

    @property
    def blocking(self) -> bool:
        return any(issue.severity == SEVERITY_ERROR for issue in self.issues)

    def error(self, issue_type: str, message: str) -> None:
        self.issues.append(ImportIssue(issue_type, SEVERITY_ERROR, message))

    def warn(self, issue_type: str, message: str) -> None:
        self.issues.append(ImportIssue(issue_type, SEVERITY_WARNING, message))

    def to_dict(self) -> dict:
        return {
            "index": self.row.index,
            "row": self.row.to_dict(),
            "actions": list(self.actions),
            "issues": [issue.to_dict() for issue in self.issues],
            "blocking": self.blocking,
        }


@dataclass
class ImportAnalysis:
    rows: list[RowPlan]
    brands: dict[str, BrandPlan]
    products: dict[str, ProductPlan]
    variants: dict[str, VariantPlan]
    summary: dict

    @property
    def blocking_issue_count(self) -> int:
        return self.summary["blocking_issue_count"]

    def to_preview(self) -> dict:
        return {"rows": [plan.to_dict() for plan in self.rows], "summary": self.summary}


@dataclass
class _Projection:
    """Where a SKU's catalogue fields and on-hand stand after the rows seen so far."""
    size: str | None
    color: str | None
    barcode: str | None
    price_cents: int | None
    on_hand: int


def variant_changes(current, row: ImportRow) -> dict[str, dict]:
    """
    Fields the row would change on a variant.

    Text fields only change when the row supplies a non-empty value; price
    changes whenever the row carries a price that differs.
    """
    changes: dict[str, dict] = {}
    for name in UPDATABLE_FIELDS:
        new_value = getattr(row, name)
        if new_value is None:
            continue
        old_value = getattr(current, name)
        if new_value != old_value:
            changes[name] = {"from": old_value, "to": new_value}
    return changes


def _signature(row: ImportRow) -> tuple:
    return (
        brand_key_for(row.brand_name),
        row.product_name.strip().lower(),
        (row.size or "").lower(),
        (row.color or "").lower(),
        row.price_cents,
        row.on_hand,
    )


def analyse_inventory_import(rows: Iterable[ImportRow], context: ImportContext) -> ImportAnalysis:
    """
    Build the per-row reconciliation plan. Pure: reads only `context`.

    Returns an ImportAnalysis whose summary has the shape
    {total_rows, create{brands, products, variants},
     update{variants, price_changes, stock_adjustments},
     duplicates[{sku, rows, message}], blocking_issue_count}.
    """
    rows = list(rows)
    brands: dict[str, BrandPlan] = {}
    products: dict[str, ProductPlan] = {}
    variants: dict[str, VariantPlan] = {}
    plans: list[RowPlan] = []

    first_signatures: dict[str, tuple] = {}
    duplicate_groups: dict[str, dict] = {}
    occurrences: dict[str, list[int]] = {}

    projections: dict[str, _Projection] = {}
    barcode_claims: dict[str, str] = {}
    announced: set[tuple[str, str]] = set()

    variant_updates = 0
    price_changes = 0
    stock_adjustments = 0

    for row in rows:
        brand_key = brand_key_for(row.brand_name)
        product_key = product_key_for(brand_key, row.product_name)
        sku_key = sku_key_for(row.sku)
        plan = RowPlan(row=row, brand_key=brand_key, product_key=product_key, sku_key=sku_key)
        plans.append(plan)

        if not row.brand_name.strip():
            plan.error(ISSUE_INVALID_FIELD, "Brand name is required")
        if not row.product_name.strip():
            plan.error(ISSUE_INVALID_FIELD, "Product name is required")
        if not row.sku.strip():
            plan.error(ISSUE_INVALID_FIELD, "SKU is required")
        if plan.blocking:
            plan.actions = [ACTION_SKIP]
            continue

        brand_plan = brands.get(brand_key)
        if brand_plan is None:
            existing_brand = context.brands.get(brand_key)
            brand_plan = BrandPlan(
                key=brand_key,
                name=row.brand_name.strip(),
                existing_id=existing_brand[0] if existing_brand else None,
            )
            brands[brand_key] = brand_plan

        product_plan = products.get(product_key)
        if product_plan is None:
            existing_product = None
            if brand_plan.existing_id is not None:
                existing_product = context.product_lookup(brand_plan.existing_id, row.product_name)
            product_plan = ProductPlan(
                key=product_key,
                brand_key=brand_key,
                name=row.product_name.strip(),
                existing_id=existing_product[0] if existing_product else None,
                tags=row.tags,
            )
            products[product_key] = product_plan

        variant_plan = variants.get(sku_key)
        if variant_plan is None:
            variant_plan = VariantPlan(
                key=sku_key,
                sku=row.sku.strip(),
                product_key=product_key,
                existing=context.variants.get(sku_key),
            )
            variants[sku_key] = variant_plan
        elif variant_plan.product_key != product_key:
            plan.error(
                ISSUE_DUPLICATE_IN_FILE,
                f"SKU {row.sku} appears with conflicting product assignments",
            )

        existing = variant_plan.existing
        if existing is not None:
            if existing.brand_id != brand_plan.existing_id:
                plan.error(
                    ISSUE_CONFLICTING_RECORD,
                    f"SKU {row.sku} already belongs to {existing.brand_name} / {existing.product_name}",
                )
            elif existing.product_id != product_plan.existing_id:
                plan.error(
                    ISSUE_CONFLICTING_RECORD,
                    f"SKU {row.sku} is linked to a different product in the catalogue",
                )
            stock_state = context.stocks.get(existing.id)
            if stock_state is not None and stock_state.initial_count_entries > 1:
                plan.error(
                    ISSUE_CONFLICTING_RECORD,
                    f"SKU {row.sku} has {stock_state.initial_count_entries} initial stock counts in the ledger",
                )

        if row.barcode:
            owner = context.barcodes.get(row.barcode)
            claimed_by = barcode_claims.setdefault(row.barcode, sku_key)
            if owner is not None and sku_key_for(owner) != sku_key:
                plan.error(
                    ISSUE_CONFLICTING_RECORD,
                    f"Barcode {row.barcode} already belongs to SKU {owner}",
                )
            elif claimed_by != sku_key:
                plan.error(
                    ISSUE_CONFLICTING_RECORD,
                    f"Barcode {row.barcode} is used by more than one SKU in this file",
                )

        signature = _signature(row)
        seen_rows = occurrences.setdefault(sku_key, [])
        seen_rows.append(row.index)
        if sku_key not in first_signatures:
            first_signatures[sku_key] = signature
        else:
            rows_text = ", ".join(str(index) for index in seen_rows)
            group = duplicate_groups.setdefault(
                sku_key, {"sku": row.sku.strip(), "rows": [], "message": "", "conflicting": False}
            )
            group["rows"] = list(seen_rows)
            if first_signatures[sku_key] != signature:
                group["conflicting"] = True
                plan.error(
                    ISSUE_DUPLICATE_IN_FILE,
                    f"Duplicate SKU {row.sku} has conflicting values across rows {rows_text}",
                )
            else:
                plan.warn(ISSUE_DUPLICATE_IN_FILE, f"Duplicate SKU {row.sku} detected in rows {rows_text}")
            if group["conflicting"]:
                group["message"] = f"Duplicate SKU {row.sku} has conflicting values across rows {rows_text}"
            else:
                group["message"] = f"Duplicate SKU {row.sku} detected in rows {rows_text}"

        if plan.blocking:
            plan.actions = [ACTION_SKIP]
            continue

        actions: list[str] = []
        if brand_plan.create and ("brand", brand_key) not in announced:
            announced.add(("brand", brand_key))
            actions.append(ACTION_CREATE_BRAND)
        if product_plan.create and ("product", product_key) not in announced:
            announced.add(("product", product_key))
            actions.append(ACTION_CREATE_PRODUCT)

        projection = projections.get(sku_key)
        created_here = False
        if projection is None:
            if existing is not None:
                stock_state = context.stocks.get(existing.id) or VariantStockState()
                projection = _Projection(
                    size=existing.size,
                    color=existing.color,
                    barcode=existing.barcode,
                    price_cents=existing.price_cents,
                    on_hand=stock_state.on_hand,
                )
            else:
                actions.append(ACTION_CREATE_VARIANT)
                projection = _Projection(
                    size=row.size,
                    color=row.color,
                    barcode=row.barcode,
                    price_cents=row.price_cents,
                    on_hand=0,
                )
                created_here = True
            projections[sku_key] = projection

        if not created_here:
            changes = variant_changes(projection, row)
            if changes:
                actions.append(ACTION_UPDATE_VARIANT)
                variant_updates += 1
                if "price_cents" in changes:
                    price_changes += 1
                for name, change in changes.items():
                    setattr(projection, name, change["to"])

        if row.on_hand is not None and row.on_hand != projection.on_hand:
            actions.append(ACTION_ADJUST_STOCK)
            stock_adjustments += 1
            projection.on_hand = row.on_hand

        plan.actions = actions

    blocking_rows = sum(1 for plan in plans if plan.blocking)
    summary = {
        "total_rows": len(rows),
        "create": {
            "brands": sum(1 for p in brands.values() if p.create),
            "products": sum(1 for p in products.values() if p.create),
            "variants": sum(1 for p in variants.values() if p.create),
        },
        "update": {
            "variants": variant_updates,
            "price_changes": price_changes,
            "stock_adjustments": stock_adjustments,
        },
        "duplicates": [
            {"sku": group["sku"], "rows": group["rows"], "message": group["message"]}
            for group in duplicate_groups.values()
        ],
        "blocking_issue_count": blocking_rows,
    }
    return ImportAnalysis(rows=plans, brands=brands, products=products, variants=variants, summary=summary)
