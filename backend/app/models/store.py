"""Retail Ops — Store (tenant) and StoreCounter models."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Store(Base):
    """A store is the tenant: every other row is scoped to one."""

    __tablename__ = "stores"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    counter: Mapped["StoreCounter | None"] = relationship("StoreCounter", back_populates="store", uselist=False)


class StoreCounter(Base):
    """Per-store document sequence state. One row per store, incremented under row lock."""

    __tablename__ = "store_counters"

    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"), primary_key=True
    )
    last_po_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    po_number_prefix: Mapped[str] = mapped_column(String(20), nullable=False, default="PO")
    po_number_padding: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    store: Mapped["Store"] = relationship("Store", back_populates="counter")
