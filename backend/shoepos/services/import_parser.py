# Overview: Inventory CSV parsing: header aliasing, value cleaning, and the canonical typed row.

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ..validation import ValidationError


class ImportParseError(ValidationError):
    """Raised when the CSV itself cannot be read (encoding, quoting, header)."""


# Canonical field -> accepted header spellings (already normalised)
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "brand_name": ("brand", "brandname", "brandlabel", "manufacturer"),
    "product_name": ("model", "product", "productname", "style"),
    "sku": ("sku", "skucode", "code"),
    "size": ("size", "dimension", "sizing"),
    "color": ("color", "colour", "shade"),
    "price": ("price", "retailprice", "cost"),
    "price_cents": ("pricecents",),
    "on_hand": ("onhand", "quantity", "qty", "stock", "inventory"),
    "tags": ("tags", "taglist", "keywords"),
    "barcode": ("barcode", "upc", "ean", "gtin"),
}

_ALIAS_LOOKUP = {alias: canonical for canonical, aliases in HEADER_ALIASES.items() for alias in aliases}

_HEADER_STRIP = re.compile(r"[^a-z0-9]")
_PRICE_STRIP = re.compile(r"[^0-9.,-]")
_QUANTITY_STRIP = re.compile(r"[^0-9-]")
_TAG_SPLIT = re.compile(r"[,;|]")


@dataclass(frozen=True)
class ImportRow:
    """
    One CSV data row in canonical shape.

    index is 1-based in file order (blank lines are not counted).
    Required text fields are "" when absent so planning can flag them.
    """
    index: int
    brand_name: str
    product_name: str
    sku: str
    size: str | None = None
    color: str | None = None
    price_cents: int | None = None
    on_hand: int | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    barcode: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "brand_name": self.brand_name,
            "product_name": self.product_name,
            "sku": self.sku,
            "size": self.size,
            "color": self.color,
            "price_cents": self.price_cents,
            "on_hand": self.on_hand,
            "tags": list(self.tags),
            "barcode": self.barcode,
        }


def normalize_header(header: str) -> str:
    return _HEADER_STRIP.sub("", (header or "").lower())


def canonical_field(header: str) -> str | None:
    return _ALIAS_LOOKUP.get(normalize_header(header))


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def parse_price_cents(value: Any) -> int | None:
    """
    "$1,234.50" -> 123450, "12,5" -> 1250. Unparseable or negative -> None.

    Separators: when both "," and "." appear the right-most one is the
    decimal point; a lone "," is treated as the decimal point.
    """
    text = _to_text(value)
    if text is None:
        return None
    cleaned = _PRICE_STRIP.sub("", text)
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None

    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return cents if cents >= 0 else None


def parse_quantity(value: Any) -> int | None:
    """Digits (and sign) only; negative or non-numeric -> None."""
    text = _to_text(value)
    if text is None:
        return None
    cleaned = _QUANTITY_STRIP.sub("", text)
    try:
        quantity = int(cleaned)
    except ValueError:
        return None
    return quantity if quantity >= 0 else None


def parse_tags(value: Any) -> tuple[str, ...]:
    text = _to_text(value)
    if text is None:
        return ()
    return tuple(tag.strip() for tag in _TAG_SPLIT.split(text) if tag.strip())


def _decode(data: bytes | str) -> str:
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ImportParseError("CSV must be UTF-8 encoded") from exc


def _build_row(index: int, mapped: dict[str, str]) -> ImportRow:
    price_cents = None
    if "price_cents" in mapped:
        price_cents = parse_quantity(mapped["price_cents"])
    if price_cents is None and "price" in mapped:
        price_cents = parse_price_cents(mapped["price"])

    return ImportRow(
        index=index,
        brand_name=mapped.get("brand_name", ""),
        product_name=mapped.get("product_name", ""),
        sku=mapped.get("sku", ""),
        size=_to_text(mapped.get("size")),
        color=_to_text(mapped.get("color")),
        price_cents=price_cents,
        on_hand=parse_quantity(mapped.get("on_hand")),
        tags=parse_tags(mapped.get("tags")),
        barcode=_to_text(mapped.get("barcode")),
    )


def parse_inventory_csv(data: bytes | str) -> list[ImportRow]:
    """
    Parse raw CSV into canonical rows.

    An empty file yields no rows. Raises ImportParseError when the file is
    not UTF-8, has broken quoting, has no recognisable header row, or has a
    row with more cells than the header.
    """
    text = _decode(data)
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)

    header: list[str | None] | None = None
    rows: list[ImportRow] = []
    try:
        for record in reader:
            cells = [cell.strip() for cell in record]
            if not any(cells):
                continue

            if header is None:
                header = [canonical_field(cell) for cell in cells]
                if not any(header):
                    raise ImportParseError(
                        "CSV header row is missing or has no recognised columns",
                        details={"headers": cells},
                    )
                continue

            if len(cells) > len(header):
                raise ImportParseError(
                    f"Row {len(rows) + 1} has {len(cells)} columns but the header has {len(header)}"
                )

            mapped: dict[str, str] = {}
            for canonical, cell in zip(header, cells):
                # First non-empty value wins when two headers alias the same field
                if canonical and cell and canonical not in mapped:
                    mapped[canonical] = cell
            rows.append(_build_row(len(rows) + 1, mapped))
    except csv.Error as exc:
        raise ImportParseError(f"CSV could not be parsed: {exc}") from exc

    return rows
