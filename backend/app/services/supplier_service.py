"""Retail Ops — SupplierService: store-scoped supplier lookup."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.catalog import Supplier


class SupplierService:

    @staticmethod
    async def get_by_id(db: AsyncSession, id: UUID, store_id: UUID) -> Supplier | None:
        result = await db.execute(
            select(Supplier).where(
                Supplier.id == id,
                Supplier.store_id == store_id,
            )
        )
        return result.scalar_one_or_none()
