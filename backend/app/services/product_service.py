"""Retail Ops — ProductService: store-scoped product lookup."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.catalog import Product


class ProductService:

    @staticmethod
    async def get_by_id(db: AsyncSession, id: UUID, store_id: UUID) -> Product | None:
        result = await db.execute(
            select(Product).where(Product.id == id, Product.store_id == store_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_many(db: AsyncSession, ids: set[UUID], store_id: UUID) -> dict[UUID, Product]:
        """Fetch several products at once, keyed by id. Missing or foreign ids are simply absent."""
        if not ids:
            return {}
        result = await db.execute(
            select(Product).where(Product.id.in_(ids), Product.store_id == store_id)
        )
        return {p.id: p for p in result.scalars().all()}
