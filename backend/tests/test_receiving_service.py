import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidQuantityError,
    InvalidStateError,
    NotFoundError,
)
from app.models import InventoryItem, InventoryLocation, PurchaseOrderLine, StockMovement
from app.models.inventory import MovementType
from app.models.purchase_order import POStatus
from app.services.purchase_order_service import PurchaseOrderService
from app.services.receiving_service import ReceivingService, SerializedItem
from app.services.stock_service import StockService

from factories import bulk_line, serialized_line


async def _create(session_maker, store, lines):
    async with session_maker() as session:
        po = await PurchaseOrderService.create_po(session, store.store_id, store.supplier_id, lines)
        await session.commit()
        return po


async def _receive(session_maker, store, po, line, quantity, serialized_items=None):
    async with session_maker() as session:
        received = await ReceivingService.receive_line(
            session, store.store_id, po.id, line.id, quantity, store.location_id,
            serialized_items=serialized_items,
        )
        await session.commit()
        return received


async def _reload(session_maker, store, po):
    async with session_maker() as session:
        return await PurchaseOrderService.get_po(session, store.store_id, po.id)


async def _on_hand(session_maker, store, product_id) -> int:
    async with session_maker() as session:
        return await StockService.get_on_hand(session, store.store_id, product_id, store.location_id)


async def _item_count(session_maker) -> int:
    async with session_maker() as session:
        return (await session.execute(select(func.count(InventoryItem.id)))).scalar_one()


async def test_bulk_receipt_walks_the_lifecycle(session_maker, store):
    """
    GIVEN a PO with one line of 10 x 5.00 (total 50.00, ORDERED)
    WHEN 4 units and then the remaining 6 are received
    THEN the PO goes PARTIALLY_RECEIVED then RECEIVED, stock follows at cost 5.00,
    and one more unit is refused without touching anything
    """
    po = await _create(session_maker, store, [bulk_line(store, 10, "5.00")])
    line = po.lines[0]
    assert po.total_amount == Decimal("50.00")
    assert po.status == POStatus.ORDERED.value

    received = await _receive(session_maker, store, po, line, 4)
    assert received.received_quantity == 4
    reloaded = await _reload(session_maker, store, po)
    assert reloaded.status == POStatus.PARTIALLY_RECEIVED.value
    assert reloaded.received_date is None
    assert await _on_hand(session_maker, store, store.bulk_product_id) == 4

    received = await _receive(session_maker, store, po, line, 6)
    assert received.received_quantity == 10
    reloaded = await _reload(session_maker, store, po)
    assert reloaded.status == POStatus.RECEIVED.value
    assert reloaded.received_date is not None
    assert await _on_hand(session_maker, store, store.bulk_product_id) == 10

    async with session_maker() as session:
        items = (await session.execute(select(InventoryItem))).scalars().all()
    assert len(items) == 1
    assert items[0].cost_price == Decimal("5.00")
    assert items[0].purchase_order_line_id == line.id

    with pytest.raises(InvalidQuantityError):
        await _receive(session_maker, store, po, line, 1)
    assert (await _reload(session_maker, store, po)).lines[0].received_quantity == 10
    assert await _on_hand(session_maker, store, store.bulk_product_id) == 10


async def test_over_receipt_leaves_state_and_stock_unchanged(session_maker, store):
    po = await _create(session_maker, store, [bulk_line(store, 10, "5.00"), serialized_line(store, 1)])
    line = po.lines[0]
    await _receive(session_maker, store, po, line, 4)

    with pytest.raises(InvalidQuantityError):
        await _receive(session_maker, store, po, line, 7)

    reloaded = await _reload(session_maker, store, po)
    assert reloaded.lines[0].received_quantity == 4
    assert reloaded.status == POStatus.PARTIALLY_RECEIVED.value
    assert await _on_hand(session_maker, store, store.bulk_product_id) == 4


@pytest.mark.parametrize("quantity", [0, -3])
async def test_non_positive_quantity_is_invalid_quantity(session_maker, store, quantity):
    po = await _create(session_maker, store, [bulk_line(store)])
    with pytest.raises(InvalidQuantityError):
        await _receive(session_maker, store, po, po.lines[0], quantity)


async def test_received_date_is_stamped_once(session_maker, store):
    po = await _create(session_maker, store, [bulk_line(store, 2), bulk_line(store, 3, "1.00")])
    await _receive(session_maker, store, po, po.lines[0], 2)
    assert (await _reload(session_maker, store, po)).received_date is None

    await _receive(session_maker, store, po, po.lines[1], 3)
    reloaded = await _reload(session_maker, store, po)
    assert reloaded.status == POStatus.RECEIVED.value
    assert reloaded.received_date is not None


async def test_serialized_receipt_with_too_few_items_creates_no_stock(session_maker, store):
    """
    GIVEN a serialized line ordering 2 units
    WHEN 2 units are received with only 1 serialized item
    THEN the receipt fails with INVALID_INPUT and no stock exists
    """
    po = await _create(session_maker, store, [serialized_line(store, 2)])

    with pytest.raises(InvalidInputError):
        await _receive(session_maker, store, po, po.lines[0], 2, [SerializedItem(unit_id="SN-1")])

    assert await _item_count(session_maker) == 0
    reloaded = await _reload(session_maker, store, po)
    assert reloaded.lines[0].received_quantity == 0
    assert reloaded.status == POStatus.ORDERED.value


async def test_serialized_receipt_creates_one_item_per_unit(session_maker, store):
    po = await _create(session_maker, store, [serialized_line(store, 2, "300.00")])

    await _receive(
        session_maker, store, po, po.lines[0], 2,
        [SerializedItem(unit_id=" sn-1 "), SerializedItem(unit_id="SN-2", condition="open box")],
    )

    async with session_maker() as session:
        items = (await session.execute(select(InventoryItem).order_by(InventoryItem.unit_id))).scalars().all()
        movements = (await session.execute(select(StockMovement))).scalars().all()
    assert [item.unit_id for item in items] == ["SN-1", "SN-2"]
    assert [item.condition for item in items] == ["new", "open box"]
    assert all(item.quantity == 1 and item.cost_price == Decimal("300.00") for item in items)
    assert len(movements) == 2
    assert all(m.movement_type == MovementType.PURCHASE_RECEIPT.value for m in movements)
    assert all(m.reference_id == po.lines[0].id for m in movements)
    assert all(m.reference_type == "PO_LINE" for m in movements)
    assert (await _reload(session_maker, store, po)).status == POStatus.RECEIVED.value


async def test_duplicate_unit_id_rolls_back_whole_receipt(session_maker, store):
    po = await _create(session_maker, store, [serialized_line(store, 2)])

    with pytest.raises(ConflictError):
        await _receive(
            session_maker, store, po, po.lines[0], 2,
            [SerializedItem(unit_id="SN-9"), SerializedItem(unit_id="sn-9")],
        )

    assert await _item_count(session_maker) == 0
    assert (await _reload(session_maker, store, po)).lines[0].received_quantity == 0


async def test_unit_id_already_in_stock_is_conflict(session_maker, store):
    first = await _create(session_maker, store, [serialized_line(store, 1)])
    second = await _create(session_maker, store, [serialized_line(store, 1)])
    await _receive(session_maker, store, first, first.lines[0], 1, [SerializedItem(unit_id="IMEI-1")])

    with pytest.raises(ConflictError):
        await _receive(session_maker, store, second, second.lines[0], 1, [SerializedItem(unit_id="IMEI-1")])

    assert await _item_count(session_maker) == 1


async def test_unit_inserted_after_existence_check_is_conflict(session_maker, store, monkeypatch):
    """
    GIVEN a unit already committed by another receipt that the existence check did not see
    WHEN a second receipt inserts the same unit id
    THEN the unique constraint surfaces as CONFLICT and nothing from the second receipt is kept
    """
    first = await _create(session_maker, store, [serialized_line(store, 1)])
    second = await _create(session_maker, store, [serialized_line(store, 1)])
    await _receive(session_maker, store, first, first.lines[0], 1, [SerializedItem(unit_id="IMEI-7")])

    async def _unit_not_seen(db, store_id, unit_id):
        return False

    monkeypatch.setattr(StockService, "_unit_exists", staticmethod(_unit_not_seen))

    with pytest.raises(ConflictError):
        await _receive(session_maker, store, second, second.lines[0], 1, [SerializedItem(unit_id="IMEI-7")])

    assert await _item_count(session_maker) == 1
    assert (await _reload(session_maker, store, second)).lines[0].received_quantity == 0


async def test_inactive_location_of_same_store_can_receive(session_maker, store):
    po = await _create(session_maker, store, [bulk_line(store, 5, "5.00")])
    async with session_maker() as session:
        location = await session.get(InventoryLocation, store.location_id)
        location.is_active = False
        await session.commit()

    received = await _receive(session_maker, store, po, po.lines[0], 5)

    assert received.received_quantity == 5
    assert await _on_hand(session_maker, store, store.bulk_product_id) == 5


async def test_serialized_items_on_bulk_line_are_rejected(session_maker, store):
    po = await _create(session_maker, store, [bulk_line(store, 2)])

    with pytest.raises(InvalidInputError):
        await _receive(session_maker, store, po, po.lines[0], 1, [SerializedItem(unit_id="SN-1")])

    assert await _item_count(session_maker) == 0


async def test_unknown_location_and_line_are_not_found(session_maker, store, other_store):
    po = await _create(session_maker, store, [bulk_line(store)])

    async with session_maker() as session:
        with pytest.raises(NotFoundError):
            await ReceivingService.receive_line(
                session, store.store_id, po.id, po.lines[0].id, 1, other_store.location_id
            )
    async with session_maker() as session:
        with pytest.raises(NotFoundError):
            await ReceivingService.receive_line(
                session, store.store_id, po.id, other_store.bulk_product_id, 1, store.location_id
            )


async def test_receiving_another_stores_po_is_not_found(session_maker, store, other_store):
    po = await _create(session_maker, store, [bulk_line(store)])

    async with session_maker() as session:
        with pytest.raises(NotFoundError):
            await ReceivingService.receive_line(
                session, other_store.store_id, po.id, po.lines[0].id, 1, other_store.location_id
            )


async def test_cancelled_po_cannot_be_received(session_maker, store):
    po = await _create(session_maker, store, [bulk_line(store)])
    async with session_maker() as session:
        await PurchaseOrderService.cancel_po(session, store.store_id, po.id)
        await session.commit()

    with pytest.raises(InvalidStateError):
        await _receive(session_maker, store, po, po.lines[0], 1)
    assert await _item_count(session_maker) == 0


@pytest.mark.concurrency
async def test_concurrent_receipts_never_exceed_ordered(session_maker, store):
    po = await _create(session_maker, store, [bulk_line(store, 10, "5.00")])
    line = po.lines[0]

    async def receive_three():
        try:
            await _receive(session_maker, store, po, line, 3)
            return True
        except InvalidQuantityError:
            return False

    outcomes = await asyncio.gather(*(receive_three() for _ in range(5)))

    assert outcomes.count(True) == 3
    async with session_maker() as session:
        stored = await session.get(PurchaseOrderLine, line.id)
    assert stored.received_quantity == 9
    assert await _on_hand(session_maker, store, store.bulk_product_id) == 9
