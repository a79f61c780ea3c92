# Overview: Model package exports; importing it registers every table with SQLAlchemy metadata.

from .auth import User, SessionToken
from .catalog import Brand, Product, Variant, Supplier
from .ledger import StockLedgerEntry
from .sales import Sale, SaleItem
from .purchasing import PurchaseOrder, PurchaseOrderItem, GoodsReceipt, GoodsReceiptItem
from .imports import InventoryImportBatch, InventoryImportAuditLog

__all__ = [
    "User",
    "SessionToken",
    "Brand",
    "Product",
    "Variant",
    "Supplier",
    "StockLedgerEntry",
    "Sale",
    "SaleItem",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "GoodsReceipt",
    "GoodsReceiptItem",
    "InventoryImportBatch",
    "InventoryImportAuditLog",
]
