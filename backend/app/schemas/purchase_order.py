"""Retail Ops — Purchase Order schemas."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.purchase_order import POStatus


class POLineCreate(BaseModel):
    product_id: UUID
    ordered_quantity: int = Field(..., gt=0)
    unit_cost: Decimal = Field(..., ge=0, decimal_places=2)


class POCreate(BaseModel):
    supplier_id: UUID
    order_date: datetime | None = None
    expected_date: datetime | None = None
    notes: str | None = None
    lines: list[POLineCreate] = Field(..., min_length=1)


class POUpdate(BaseModel):
    """Header fields only; lines are fixed once the PO exists."""

    model_config = ConfigDict(extra="forbid")

    supplier_id: UUID | None = None
    notes: str | None = None


class SerializedItemIn(BaseModel):
    unit_id: str = Field(..., min_length=1, max_length=100)
    condition: str | None = Field(None, max_length=50)
    notes: str | None = None


class POLineReceive(BaseModel):
    # Positivity is checked by the receiving service so it reports INVALID_QUANTITY
    received_quantity: int
    location_id: UUID
    serialized_items: list[SerializedItemIn] | None = None


class SupplierSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class POLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    purchase_order_id: UUID
    product_id: UUID
    ordered_quantity: int
    received_quantity: int
    unit_cost: Decimal


class POResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    po_number: str
    store_id: UUID
    supplier_id: UUID
    supplier: SupplierSummary | None = None
    user_id: UUID | None
    status: POStatus
    order_date: datetime
    expected_date: datetime | None
    received_date: datetime | None
    notes: str | None
    total_amount: Decimal
    lines: list[POLineResponse]
    created_at: datetime | None = None


class POListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    po_number: str
    supplier: SupplierSummary | None = None
    status: POStatus
    order_date: datetime
    expected_date: datetime | None
    received_date: datetime | None
    total_amount: Decimal
    line_count: int
    created_at: datetime | None = None
