"""Retail Ops — Purchase-order state machine: status derivation and transition guards.

    DRAFT ──► ORDERED ──► PARTIALLY_RECEIVED ──► RECEIVED
      │          │
      └──────────┴──► CANCELLED

Receipt-driven transitions come only from ``derive_status``; CANCELLED only from
an explicit cancel, which overrides the derived status.
"""
from collections.abc import Iterable
from typing import Protocol

from app.core.exceptions import InvalidStateError
from app.models.purchase_order import POStatus

RECEIVABLE_STATUSES = frozenset({POStatus.ORDERED, POStatus.PARTIALLY_RECEIVED})
UPDATABLE_STATUSES = frozenset({POStatus.DRAFT, POStatus.ORDERED})
CANCELLABLE_STATUSES = frozenset({POStatus.DRAFT, POStatus.ORDERED})


class ReceiptProgress(Protocol):
    ordered_quantity: int
    received_quantity: int


def derive_status(lines: Iterable[ReceiptProgress]) -> POStatus:
    """Status implied by the receipt state of all lines of one PO."""
    lines = list(lines)
    if lines and all(line.received_quantity >= line.ordered_quantity for line in lines):
        return POStatus.RECEIVED
    if any(line.received_quantity > 0 for line in lines):
        return POStatus.PARTIALLY_RECEIVED
    return POStatus.ORDERED


def ensure_receivable(status: str) -> None:
    if POStatus(status) not in RECEIVABLE_STATUSES:
        raise InvalidStateError(f"Cannot receive stock for a purchase order in status {status}")


def ensure_updatable(status: str) -> None:
    if POStatus(status) not in UPDATABLE_STATUSES:
        raise InvalidStateError(
            f"Only purchase orders in DRAFT or ORDERED status can be updated. Current status: {status}"
        )


def ensure_cancellable(status: str) -> None:
    current = POStatus(status)
    if current == POStatus.PARTIALLY_RECEIVED:
        raise InvalidStateError(
            "Cannot cancel a partially received purchase order. "
            "Resolve the receipts already posted against it first."
        )
    if current not in CANCELLABLE_STATUSES:
        raise InvalidStateError(f"Cannot cancel a purchase order in status {status}")
