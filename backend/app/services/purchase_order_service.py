"""Retail Ops — PurchaseOrderService: create, list, get, update, cancel."""
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from app.models.catalog import Supplier
from app.models.purchase_order import POStatus, PurchaseOrder, PurchaseOrderLine
from app.services.po_lifecycle import ensure_cancellable, ensure_updatable
from app.services.product_service import ProductService
from app.services.sequence_service import SequenceService
from app.services.supplier_service import SupplierService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
PATCHABLE_FIELDS = frozenset({"supplier_id", "notes"})


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def calculate_total(lines: list[dict]) -> Decimal:
    """Σ unit_cost × ordered_quantity, exact to the cent."""
    total = sum(
        (_as_decimal(line["unit_cost"]) * int(line["ordered_quantity"]) for line in lines),
        Decimal("0"),
    )
    return total.quantize(CENT)


class PurchaseOrderService:
    """Purchase order documents: creation with numbering, queries, header edits and cancellation."""

    @staticmethod
    async def create_po(
        db: AsyncSession,
        store_id: UUID,
        supplier_id: UUID,
        lines: list[dict],
        *,
        notes: str | None = None,
        order_date: datetime | None = None,
        expected_date: datetime | None = None,
        created_by: UUID | None = None,
    ) -> PurchaseOrder:
        """
        Create a PO in ORDERED status with its lines and total.
        Supplier and every product are validated before anything is written,
        so a failure leaves no counter increment, header or line behind.
        """
        if not lines:
            raise InvalidInputError("A purchase order needs at least one line")

        supplier = await SupplierService.get_by_id(db, supplier_id, store_id)
        if not supplier:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        products = await ProductService.get_many(db, {line["product_id"] for line in lines}, store_id)
        for line in lines:
            if line["product_id"] not in products:
                raise NotFoundError(f"Product {line['product_id']} not found")
            if int(line["ordered_quantity"]) <= 0:
                raise InvalidInputError("Ordered quantity must be greater than zero")
            if _as_decimal(line["unit_cost"]) < 0:
                raise InvalidInputError("Unit cost must not be negative")

        total = calculate_total(lines)
        po_number = await SequenceService.next_po_number(db, store_id)

        po = PurchaseOrder(
            store_id=store_id,
            po_number=po_number,
            supplier_id=supplier_id,
            user_id=created_by,
            status=POStatus.ORDERED.value,
            order_date=order_date or datetime.now(timezone.utc),
            expected_date=expected_date,
            notes=notes,
            total_amount=total,
            lines=[
                PurchaseOrderLine(
                    position=position,
                    product_id=line["product_id"],
                    ordered_quantity=int(line["ordered_quantity"]),
                    received_quantity=0,
                    unit_cost=_as_decimal(line["unit_cost"]).quantize(CENT),
                )
                for position, line in enumerate(lines)
            ],
        )
        db.add(po)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Purchase order number {po_number} is already in use") from exc

        await db.refresh(po)
        logger.info("Created purchase order %s (%s lines, total %s) for store %s", po.po_number, len(lines), total, store_id)
        return po

    @staticmethod
    async def list_pos(
        db: AsyncSession,
        store_id: UUID,
        *,
        status: str | None = None,
        supplier_id: UUID | None = None,
        search: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[PurchaseOrder], int]:
        """Paginated list of POs for the store, newest first."""
        q = select(PurchaseOrder).where(PurchaseOrder.store_id == store_id)
        count_q = select(func.count(PurchaseOrder.id)).where(PurchaseOrder.store_id == store_id)
        if status:
            q = q.where(PurchaseOrder.status == status)
            count_q = count_q.where(PurchaseOrder.status == status)
        if supplier_id:
            q = q.where(PurchaseOrder.supplier_id == supplier_id)
            count_q = count_q.where(PurchaseOrder.supplier_id == supplier_id)
        if start_date:
            start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
            q = q.where(PurchaseOrder.created_at >= start)
            count_q = count_q.where(PurchaseOrder.created_at >= start)
        if end_date:
            # End date is inclusive of the whole day
            end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
            q = q.where(PurchaseOrder.created_at < end)
            count_q = count_q.where(PurchaseOrder.created_at < end)
        if search:
            term = f"%{search}%"
            matches = or_(
                PurchaseOrder.po_number.ilike(term),
                PurchaseOrder.notes.ilike(term),
                Supplier.name.ilike(term),
            )
            q = q.join(Supplier, Supplier.id == PurchaseOrder.supplier_id).where(matches)
            count_q = count_q.join(Supplier, Supplier.id == PurchaseOrder.supplier_id).where(matches)

        total = (await db.execute(count_q)).scalar_one()
        q = (
            q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.po_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(q)
        return list(result.scalars().all()), total

    @staticmethod
    async def get_po(db: AsyncSession, store_id: UUID, po_id: UUID, *, for_update: bool = False) -> PurchaseOrder:
        """Get a single PO with lines. Another store's PO is reported as not found."""
        q = select(PurchaseOrder).where(
            PurchaseOrder.id == po_id,
            PurchaseOrder.store_id == store_id,
        )
        if for_update:
            q = q.with_for_update().execution_options(populate_existing=True)
        po = (await db.execute(q)).scalar_one_or_none()
        if not po:
            raise NotFoundError(f"Purchase order {po_id} not found")
        return po

    @staticmethod
    async def update_po(
        db: AsyncSession,
        store_id: UUID,
        po_id: UUID,
        patch: dict,
    ) -> PurchaseOrder:
        """Edit header fields (supplier, notes) while the PO is DRAFT or ORDERED."""
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be modified: {', '.join(sorted(unknown))}")

        po = await PurchaseOrderService.get_po(db, store_id, po_id, for_update=True)
        ensure_updatable(po.status)

        changes: dict = {}
        if patch.get("supplier_id"):
            supplier = await SupplierService.get_by_id(db, patch["supplier_id"], store_id)
            if not supplier:
                raise NotFoundError(f"Supplier {patch['supplier_id']} not found")
            changes["supplier_id"] = supplier.id
        if "notes" in patch:
            changes["notes"] = patch["notes"]

        if not changes:
            return po

        for field, value in changes.items():
            setattr(po, field, value)
        await db.flush()
        await db.refresh(po)
        logger.info("Updated purchase order %s: %s", po.po_number, ", ".join(changes))
        return po

    @staticmethod
    async def cancel_po(db: AsyncSession, store_id: UUID, po_id: UUID) -> PurchaseOrder:
        """Cancel a PO. Only DRAFT or ORDERED; nothing but the status changes."""
        po = await PurchaseOrderService.get_po(db, store_id, po_id, for_update=True)
        ensure_cancellable(po.status)
        po.status = POStatus.CANCELLED.value
        await db.flush()
        await db.refresh(po)
        logger.info("Cancelled purchase order %s for store %s", po.po_number, store_id)
        return po
