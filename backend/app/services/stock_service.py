"""Retail Ops — StockService: the only writer of on-hand inventory.

Both entry points run inside the caller's session, so the stock rows and the
movement ledger entries they write commit or roll back together with whatever
document triggered them (e.g. a purchase-order receipt).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, InvalidInputError, InvalidQuantityError, NotFoundError
from app.models.inventory import (
    DEFAULT_CONDITION,
    InventoryItem,
    InventoryItemStatus,
    MovementType,
    StockMovement,
)
from app.services.location_service import LocationService
from app.services.product_service import ProductService

logger = logging.getLogger(__name__)

REFERENCE_PO_LINE = "PO_LINE"


@dataclass(frozen=True)
class UnitTrackedStockCommand:
    product_id: UUID
    location_id: UUID
    unit_id: str
    cost_price: Decimal
    source_line_id: UUID
    condition: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class BatchStockCommand:
    product_id: UUID
    location_id: UUID
    quantity: int
    cost_price: Decimal
    source_line_id: UUID
    condition: str | None = None
    notes: str | None = None


def normalize_unit_id(raw: str) -> str:
    """Unit identifiers (serials, IMEIs) compare case-insensitively and ignore surrounding blanks."""
    return raw.strip().upper()


class StockService:
    """Stock-increase commands plus on-hand reads."""

    @staticmethod
    async def _validate_target(db: AsyncSession, store_id: UUID, product_id: UUID, location_id: UUID):
        product = await ProductService.get_by_id(db, product_id, store_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        location = await LocationService.get_by_id(db, location_id, store_id)
        if not location:
            raise NotFoundError(f"Location {location_id} not found")
        return product

    @staticmethod
    async def _record_movement(
        db: AsyncSession,
        store_id: UUID,
        item: InventoryItem,
        quantity: int,
        cost_price: Decimal,
        source_line_id: UUID,
        actor_id: UUID | None,
        notes: str | None,
    ) -> StockMovement:
        movement = StockMovement(
            store_id=store_id,
            product_id=item.product_id,
            location_id=item.location_id,
            inventory_item_id=item.id,
            movement_type=MovementType.PURCHASE_RECEIPT.value,
            quantity_delta=quantity,
            unit_cost=cost_price,
            reference_type=REFERENCE_PO_LINE,
            reference_id=source_line_id,
            actor_id=actor_id,
            notes=f"PO receipt (line {source_line_id}). {notes or ''}".strip(),
        )
        db.add(movement)
        await db.flush()
        return movement

    @staticmethod
    async def _unit_exists(db: AsyncSession, store_id: UUID, unit_id: str) -> bool:
        result = await db.execute(
            select(InventoryItem.id).where(
                InventoryItem.store_id == store_id,
                InventoryItem.unit_id == unit_id,
            )
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def add_unit_tracked_item(
        db: AsyncSession,
        store_id: UUID,
        cmd: UnitTrackedStockCommand,
        actor_id: UUID | None = None,
    ) -> InventoryItem:
        """
        Create one serialized unit (quantity 1). Unit ids are unique per store;
        the unique constraint settles races the existence check cannot see.
        """
        product = await StockService._validate_target(db, store_id, cmd.product_id, cmd.location_id)
        if not product.is_serialized:
            raise InvalidInputError(f"Product {product.id} is not serialized; add it as a batch")

        unit_id = normalize_unit_id(cmd.unit_id)
        if not unit_id:
            raise InvalidInputError("Unit identifier must not be blank")

        if await StockService._unit_exists(db, store_id, unit_id):
            raise ConflictError(f"Unit {unit_id} already exists in inventory")

        item = InventoryItem(
            store_id=store_id,
            product_id=cmd.product_id,
            location_id=cmd.location_id,
            quantity=1,
            cost_price=cmd.cost_price,
            condition=cmd.condition or DEFAULT_CONDITION,
            status=InventoryItemStatus.AVAILABLE.value,
            unit_id=unit_id,
            purchase_order_line_id=cmd.source_line_id,
            notes=cmd.notes,
        )
        db.add(item)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Unit {unit_id} already exists in inventory") from exc

        await StockService._record_movement(
            db, store_id, item, 1, cmd.cost_price, cmd.source_line_id, actor_id, cmd.notes
        )
        return item

    @staticmethod
    async def add_batch(
        db: AsyncSession,
        store_id: UUID,
        cmd: BatchStockCommand,
        actor_id: UUID | None = None,
    ) -> InventoryItem:
        """
        Add bulk quantity. Merges into the existing bulk row with the same product,
        location, cost, condition and source line; otherwise creates one.
        """
        if cmd.quantity <= 0:
            raise InvalidQuantityError("Batch quantity must be greater than zero")
        product = await StockService._validate_target(db, store_id, cmd.product_id, cmd.location_id)
        if product.is_serialized:
            raise InvalidInputError(f"Product {product.id} is serialized; add units individually")

        condition = cmd.condition or DEFAULT_CONDITION
        result = await db.execute(
            select(InventoryItem)
            .where(
                InventoryItem.store_id == store_id,
                InventoryItem.product_id == cmd.product_id,
                InventoryItem.location_id == cmd.location_id,
                InventoryItem.cost_price == cmd.cost_price,
                InventoryItem.condition == condition,
                InventoryItem.status == InventoryItemStatus.AVAILABLE.value,
                InventoryItem.unit_id.is_(None),
                InventoryItem.purchase_order_line_id == cmd.source_line_id,
            )
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        item = result.scalar_one_or_none()

        if item:
            item.quantity += cmd.quantity
        else:
            item = InventoryItem(
                store_id=store_id,
                product_id=cmd.product_id,
                location_id=cmd.location_id,
                quantity=cmd.quantity,
                cost_price=cmd.cost_price,
                condition=condition,
                status=InventoryItemStatus.AVAILABLE.value,
                unit_id=None,
                purchase_order_line_id=cmd.source_line_id,
                notes=cmd.notes or "Received on PO",
            )
            db.add(item)
        await db.flush()
        await StockService._record_movement(
            db, store_id, item, cmd.quantity, cmd.cost_price, cmd.source_line_id, actor_id, cmd.notes
        )
        logger.debug("Added %s x product %s at %s to location %s", cmd.quantity, cmd.product_id, cmd.cost_price, cmd.location_id)
        return item

    @staticmethod
    async def get_on_hand(
        db: AsyncSession,
        store_id: UUID,
        product_id: UUID,
        location_id: UUID | None = None,
    ) -> int:
        """Available quantity of a product, optionally at one location."""
        q = select(func.coalesce(func.sum(InventoryItem.quantity), 0)).where(
            InventoryItem.store_id == store_id,
            InventoryItem.product_id == product_id,
            InventoryItem.status == InventoryItemStatus.AVAILABLE.value,
        )
        if location_id:
            q = q.where(InventoryItem.location_id == location_id)
        return int((await db.execute(q)).scalar_one())
