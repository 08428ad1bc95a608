from types import SimpleNamespace

import pytest

from app.core.exceptions import InvalidStateError
from app.models.purchase_order import POStatus
from app.services.po_lifecycle import (
    derive_status,
    ensure_cancellable,
    ensure_receivable,
    ensure_updatable,
)


def _line(ordered: int, received: int):
    return SimpleNamespace(ordered_quantity=ordered, received_quantity=received)


def test_derive_status_nothing_received_is_ordered():
    assert derive_status([_line(10, 0), _line(2, 0)]) == POStatus.ORDERED


def test_derive_status_some_received_is_partially_received():
    assert derive_status([_line(10, 4), _line(2, 0)]) == POStatus.PARTIALLY_RECEIVED


def test_derive_status_one_line_full_other_untouched_is_partially_received():
    assert derive_status([_line(10, 10), _line(2, 0)]) == POStatus.PARTIALLY_RECEIVED


def test_derive_status_all_lines_full_is_received():
    assert derive_status([_line(10, 10), _line(2, 2)]) == POStatus.RECEIVED


def test_derive_status_without_lines_is_ordered():
    assert derive_status([]) == POStatus.ORDERED


@pytest.mark.parametrize("status", ["ORDERED", "PARTIALLY_RECEIVED"])
def test_receivable_statuses(status):
    ensure_receivable(status)


@pytest.mark.parametrize("status", ["DRAFT", "RECEIVED", "CANCELLED", "CLOSED"])
def test_non_receivable_statuses(status):
    with pytest.raises(InvalidStateError) as exc:
        ensure_receivable(status)
    assert exc.value.code == "INVALID_STATE"


@pytest.mark.parametrize("status", ["DRAFT", "ORDERED"])
def test_updatable_and_cancellable_statuses(status):
    ensure_updatable(status)
    ensure_cancellable(status)


@pytest.mark.parametrize("status", ["PARTIALLY_RECEIVED", "RECEIVED", "CANCELLED", "CLOSED"])
def test_locked_statuses_reject_update_and_cancel(status):
    with pytest.raises(InvalidStateError):
        ensure_updatable(status)
    with pytest.raises(InvalidStateError):
        ensure_cancellable(status)


def test_cancel_partially_received_explains_why():
    with pytest.raises(InvalidStateError) as exc:
        ensure_cancellable("PARTIALLY_RECEIVED")
    assert "partially received" in exc.value.message
