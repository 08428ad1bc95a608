"""Retail Ops — SequenceService: per-store document numbering via a locked counter row.

The counter row is read with ``SELECT ... FOR UPDATE`` and incremented inside the
caller's transaction, so concurrent allocations for one store serialise on the
row and never hand out the same value. The increment is only visible once the
consuming document commits; a rolled-back transaction leaves a gap, never a
duplicate. Aggregate ``MAX(...) + 1`` or ``COUNT(*)`` numbering is never used.
"""
import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import InternalError
from app.models.store import StoreCounter

logger = logging.getLogger(__name__)


def format_po_number(prefix: str, year: int, number: int, padding: int) -> str:
    """Render e.g. ``PO-2026-00042``."""
    return f"{prefix}-{year}-{str(number).zfill(padding)}"


class SequenceService:
    """Store-scoped monotonic counters for human-readable document numbers."""

    @staticmethod
    async def _lock_counter(db: AsyncSession, store_id: UUID) -> StoreCounter | None:
        result = await db.execute(
            select(StoreCounter)
            .where(StoreCounter.store_id == store_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _lock_or_create_counter(db: AsyncSession, store_id: UUID) -> StoreCounter:
        counter = await SequenceService._lock_counter(db, store_id)
        if counter is not None:
            return counter

        # First document for this store. A concurrent creator may win the insert;
        # the savepoint keeps the rest of the caller's transaction intact.
        settings = get_settings()
        try:
            async with db.begin_nested():
                counter = StoreCounter(
                    store_id=store_id,
                    last_po_number=0,
                    po_number_prefix=settings.PO_NUMBER_DEFAULT_PREFIX,
                    po_number_padding=settings.PO_NUMBER_DEFAULT_PADDING,
                )
                db.add(counter)
            return counter
        except IntegrityError:
            logger.debug("Store counter creation raced for store %s; re-reading", store_id)

        counter = await SequenceService._lock_counter(db, store_id)
        if counter is None:
            raise InternalError(f"No sequence counter available for store {store_id}")
        return counter

    @staticmethod
    async def _allocate(db: AsyncSession, store_id: UUID) -> StoreCounter:
        counter = await SequenceService._lock_or_create_counter(db, store_id)
        counter.last_po_number += 1
        await db.flush()
        return counter

    @staticmethod
    async def next_number(db: AsyncSession, store_id: UUID) -> int:
        """Increment and return the store's PO counter. Must run inside the consuming transaction."""
        counter = await SequenceService._allocate(db, store_id)
        logger.debug("Allocated PO sequence %s for store %s", counter.last_po_number, store_id)
        return counter.last_po_number

    @staticmethod
    async def next_po_number(db: AsyncSession, store_id: UUID, *, year: int | None = None) -> str:
        """Allocate the next number and render it with the store's prefix and padding."""
        counter = await SequenceService._allocate(db, store_id)
        number = format_po_number(
            counter.po_number_prefix,
            year or datetime.now(timezone.utc).year,
            counter.last_po_number,
            counter.po_number_padding,
        )
        logger.debug("Allocated PO number %s for store %s", number, store_id)
        return number
