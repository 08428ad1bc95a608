"""Retail Ops — LocationService: store-scoped inventory location lookup."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.location import InventoryLocation


class LocationService:
    """Read access to inventory locations. Location CRUD lives in the catalog service."""

    @staticmethod
    async def get_by_id(db: AsyncSession, id: UUID, store_id: UUID) -> InventoryLocation | None:
        result = await db.execute(
            select(InventoryLocation).where(
                InventoryLocation.id == id,
                InventoryLocation.store_id == store_id,
            )
        )
        return result.scalar_one_or_none()
