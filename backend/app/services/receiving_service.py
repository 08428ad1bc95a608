"""Retail Ops — ReceivingService: receive goods against one purchase-order line.

Everything happens in the caller's transaction with the PO row locked:
concurrent receivers of the same PO queue on the lock, so the remaining
quantity is always checked against the value that will be incremented.
Any failure (including a stock write half way through a serialized receipt)
propagates, and the caller's rollback discards every stock row and state
change made by the call.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidInputError, InvalidQuantityError, NotFoundError
from app.models.inventory import DEFAULT_CONDITION
from app.models.purchase_order import POStatus, PurchaseOrderLine
from app.services.location_service import LocationService
from app.services.po_lifecycle import derive_status, ensure_receivable
from app.services.product_service import ProductService
from app.services.purchase_order_service import PurchaseOrderService
from app.services.stock_service import BatchStockCommand, StockService, UnitTrackedStockCommand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SerializedItem:
    """One unit being received for a serialized product."""

    unit_id: str
    condition: str | None = None
    notes: str | None = None


class ReceivingService:

    @staticmethod
    async def receive_line(
        db: AsyncSession,
        store_id: UUID,
        po_id: UUID,
        line_id: UUID,
        received_quantity: int,
        location_id: UUID,
        serialized_items: list[SerializedItem] | None = None,
        actor_id: UUID | None = None,
    ) -> PurchaseOrderLine:
        """Receive stock on one line and recompute the PO status. Returns the updated line."""
        po = await PurchaseOrderService.get_po(db, store_id, po_id, for_update=True)
        line = next((candidate for candidate in po.lines if candidate.id == line_id), None)
        if line is None:
            raise NotFoundError(f"Line {line_id} not found on purchase order {po_id}")

        # Quantity bounds win over status: an exhausted line always reports INVALID_QUANTITY
        remaining = line.remaining_quantity
        if received_quantity <= 0:
            raise InvalidQuantityError("Received quantity must be greater than zero")
        if received_quantity > remaining:
            raise InvalidQuantityError(
                f"Cannot receive {received_quantity} units: only {remaining} remaining on this line"
            )

        ensure_receivable(po.status)

        location = await LocationService.get_by_id(db, location_id, store_id)
        if not location:
            raise NotFoundError(f"Location {location_id} not found")

        product = await ProductService.get_by_id(db, line.product_id, store_id)
        if not product:
            raise NotFoundError(f"Product {line.product_id} not found")

        if product.is_serialized:
            if not serialized_items or len(serialized_items) != received_quantity:
                raise InvalidInputError(
                    f"Serialized products require exactly {received_quantity} serialized item(s)"
                )
            for item in serialized_items:
                await StockService.add_unit_tracked_item(
                    db,
                    store_id,
                    UnitTrackedStockCommand(
                        product_id=line.product_id,
                        location_id=location_id,
                        unit_id=item.unit_id,
                        cost_price=line.unit_cost,
                        condition=item.condition or DEFAULT_CONDITION,
                        notes=item.notes,
                        source_line_id=line.id,
                    ),
                    actor_id=actor_id,
                )
        else:
            if serialized_items:
                raise InvalidInputError("Serialized items must not be sent for a non-serialized product")
            await StockService.add_batch(
                db,
                store_id,
                BatchStockCommand(
                    product_id=line.product_id,
                    location_id=location_id,
                    quantity=received_quantity,
                    cost_price=line.unit_cost,
                    condition=DEFAULT_CONDITION,
                    source_line_id=line.id,
                ),
                actor_id=actor_id,
            )

        line.received_quantity += received_quantity

        new_status = derive_status(po.lines)
        if new_status.value != po.status:
            po.status = new_status.value
            if new_status == POStatus.RECEIVED and po.received_date is None:
                po.received_date = datetime.now(timezone.utc)

        await db.flush()
        await db.refresh(line)
        logger.info(
            "Received %s x product %s on PO %s line %s (%s/%s); PO status %s",
            received_quantity, line.product_id, po.po_number, line.id,
            line.received_quantity, line.ordered_quantity, po.status,
        )
        return line
