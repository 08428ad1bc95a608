"""Retail Ops — API v1 router aggregation."""
from fastapi import APIRouter

from app.api.v1.endpoints import purchase_orders

api_router = APIRouter()

api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["purchase-orders"])
