# Overview: Catalogue setup and variant lookups (variant fields plus ledger-derived on-hand).

from __future__ import annotations

from ..extensions import db
from ..models import Brand, Product, Variant
from ..validation import NotFoundError
from .concurrency import run_in_transaction
from .ledger_service import get_on_hand


def create_brand(name: str) -> Brand:
    def _op():
        brand = Brand(name=name)
        db.session.add(brand)
        db.session.flush()
        return brand
    return run_in_transaction(_op)


def create_product(brand_id: int, name: str, *, description: str | None = None, tags: list[str] | None = None) -> Product:
    if db.session.get(Brand, brand_id) is None:
        raise NotFoundError("Brand not found")

    def _op():
        product = Product(brand_id=brand_id, name=name, description=description, tags=tags or [])
        db.session.add(product)
        db.session.flush()
        return product
    return run_in_transaction(_op)


def create_variant(
    product_id: int,
    sku: str,
    *,
    size: str | None = None,
    color: str | None = None,
    barcode: str | None = None,
    price_cents: int | None = None,
    cost_price_cents: int | None = None,
) -> Variant:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")

    def _op():
        variant = Variant(
            product_id=product_id,
            sku=sku,
            size=size,
            color=color,
            barcode=barcode,
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
        )
        db.session.add(variant)
        db.session.flush()
        return variant
    return run_in_transaction(_op)


def list_brands() -> list[Brand]:
    return db.session.query(Brand).order_by(Brand.name.asc()).all()


def variant_summary(variant: Variant) -> dict:
    """Catalogue fields plus product/brand names, without stock."""
    product = variant.product
    return {
        "id": variant.id,
        "sku": variant.sku,
        "size": variant.size,
        "color": variant.color,
        "barcode": variant.barcode,
        "price_cents": variant.price_cents,
        "cost_price_cents": variant.cost_price_cents,
        "product": {"id": product.id, "name": product.name},
        "brand": {"id": product.brand.id, "name": product.brand.name},
    }


def _with_on_hand(variant: Variant) -> dict:
    result = variant_summary(variant)
    result["on_hand"] = get_on_hand(variant.id)
    return result


def lookup_variant(variant_id: int) -> dict:
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFoundError("Variant not found")
    return _with_on_hand(variant)


def lookup_variant_by_barcode(code: str) -> dict:
    """Scanner lookup: barcode first, then SKU (labels often print the SKU)."""
    code = (code or "").strip()
    variant = None
    if code:
        variant = db.session.query(Variant).filter(Variant.barcode == code).first()
        if variant is None:
            variant = db.session.query(Variant).filter(Variant.sku == code).first()
    if variant is None:
        raise NotFoundError("Variant not found")
    return _with_on_hand(variant)
