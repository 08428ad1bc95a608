"""Retail Ops — SQLAlchemy models."""
from app.models.catalog import Product, Supplier
from app.models.inventory import InventoryItem, InventoryItemStatus, MovementType, StockMovement
from app.models.location import InventoryLocation
from app.models.purchase_order import POStatus, PurchaseOrder, PurchaseOrderLine
from app.models.store import Store, StoreCounter

__all__ = [
    "Store", "StoreCounter",
    "Supplier", "Product",
    "InventoryLocation",
    "PurchaseOrder", "PurchaseOrderLine", "POStatus",
    "InventoryItem", "InventoryItemStatus", "StockMovement", "MovementType",
]
