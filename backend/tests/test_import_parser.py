"""
Inventory CSV parser tests.

Verifies:
- Header aliases resolve regardless of case and punctuation
- Prices, quantities and tags are cleaned; bad values are omitted, not fatal
- Unreadable files raise ImportParseError
"""

import pytest

from shoepos.services.import_parser import (
    ImportParseError,
    canonical_field,
    parse_inventory_csv,
    parse_price_cents,
    parse_quantity,
    parse_tags,
)


class TestHeaders:

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Brand", "brand_name"),
            ("Brand Label", "brand_name"),
            ("Manufacturer", "brand_name"),
            ("Model", "product_name"),
            ("Product-Name", "product_name"),
            ("SKU Code", "sku"),
            ("Colour", "color"),
            ("Retail Price", "price"),
            ("price_cents", "price_cents"),
            ("On Hand", "on_hand"),
            ("QTY", "on_hand"),
            ("Tag List", "tags"),
            ("UPC", "barcode"),
            ("Notes", None),
        ],
    )
    def test_aliases(self, header, expected):
        assert canonical_field(header) == expected


class TestValues:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("$1,234.50", 123450),
            ("89.99", 8999),
            ("12,5", 1250),
            ("1.234,56", 123456),
            ("0.005", 1),
            ("abc", None),
            ("", None),
            ("-5", None),
        ],
    )
    def test_price(self, raw, expected):
        assert parse_price_cents(raw) == expected

    def test_quantity(self):
        assert parse_quantity(" 50 units") == 50
        assert parse_quantity("-3") is None
        assert parse_quantity("none") is None
        assert parse_quantity(None) is None

    def test_tags(self):
        assert parse_tags("running, trail;waterproof | ") == ("running", "trail", "waterproof")
        assert parse_tags("") == ()


class TestParseInventoryCsv:

    def test_parses_rows_in_file_order(self):
        data = (
            "Brand,Model,SKU,Size,Colour,Price,Qty,Tags,UPC\n"
            "Acme,Trail Runner,AR-100,42,Black,$89.99,50,running;trail,0000000000100\n"
            "\n"
            "Acme,Trail Runner,AR-101,43,Black,89.99,,,\n"
        ).encode("utf-8")
        rows = parse_inventory_csv(data)

        assert [row.index for row in rows] == [1, 2]
        first = rows[0]
        assert first.brand_name == "Acme"
        assert first.product_name == "Trail Runner"
        assert first.sku == "AR-100"
        assert first.price_cents == 8999
        assert first.on_hand == 50
        assert first.tags == ("running", "trail")
        assert first.barcode == "0000000000100"
        assert rows[1].on_hand is None
        assert rows[1].barcode is None

    def test_bom_is_ignored(self):
        rows = parse_inventory_csv("\ufeffbrand,product,sku\nAcme,Runner,A-1\n".encode("utf-8"))
        assert rows[0].brand_name == "Acme"

    def test_price_cents_column_wins(self):
        rows = parse_inventory_csv(b"brand,product,sku,price,pricecents\nAcme,Runner,A-1,10.00,1250\n")
        assert rows[0].price_cents == 1250

    def test_missing_required_values_still_parse(self):
        rows = parse_inventory_csv(b"brand,product,sku\n,Runner,A-1\n")
        assert rows[0].brand_name == ""

    def test_empty_file(self):
        assert parse_inventory_csv(b"") == []

    def test_header_without_known_columns(self):
        with pytest.raises(ImportParseError):
            parse_inventory_csv(b"foo,bar\n1,2\n")

    def test_row_wider_than_header(self):
        with pytest.raises(ImportParseError):
            parse_inventory_csv(b"brand,product,sku\nAcme,Runner,A-1,extra\n")

    def test_not_utf8(self):
        with pytest.raises(ImportParseError, match="UTF-8"):
            parse_inventory_csv("brand,product,sku\nAcmé,Runner,A-1\n".encode("latin-1"))
