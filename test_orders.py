# test_orders.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import BrokenEmitter
from pos.config import settings
from pos.errors import InvalidTransition, ItemNotFound, NotFound, OrderNotFound, ValidationFailed
from pos.models.core import LineStatus, MenuItem, Order, OrderLine, OrderStatus
from pos.schemas.orders import OrderCreate
from pos.services import orders as lifecycle
from pos.services.events import ORDER_CREATED, ORDER_UPDATED

DAY = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def burger_and_fries(seed, **extra):
    body = {
        "items": [
            {"item_id": seed["burger"], "qty": 2},
            {"item_id": seed["fries"], "qty": 1, "modifiers": {"Dips": [{"name": "Cheese", "price": "1.00"}]}},
        ],
        "discount": "1", "discount_type": "fixed", "tax_rate": "5", "table_number": "T4",
    }
    body.update(extra)
    return OrderCreate(**body)


def test_create_order_prices_and_snapshots(db, seed, waiter, emitter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), emitter, now=DAY)

    assert o.order_number == "ORD-20240115-0001"
    assert o.status == OrderStatus.PENDING
    assert (o.subtotal, o.discount_amount, o.tax_amount, o.total) == (
        Decimal("29.00"), Decimal("1.00"), Decimal("1.40"), Decimal("29.40"))
    assert o.outlet_id == seed["outlet_a"]
    assert o.created_by == waiter.id
    assert [l.item_name for l in o.lines] == ["Burger", "Fries"]
    fries = o.lines[1]
    assert fries.unit_price == Decimal("4.00")
    assert fries.effective_price == Decimal("5.00")
    assert fries.status == LineStatus.PENDING

    assert [e.name for e in emitter.events] == [ORDER_CREATED]
    ev = emitter.events[0]
    assert ev.outlet_id == seed["outlet_a"]
    assert ev.payload["order"]["order_number"] == "ORD-20240115-0001"
    assert len(ev.payload["lines"]) == 2


def test_sequence_counts_per_outlet_and_day(db, seed, waiter, admin, other_admin):
    first = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    second = lifecycle.create_order(db, admin, burger_and_fries(seed), now=DAY)
    next_day = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY + timedelta(days=1))
    pizza = OrderCreate(items=[{"item_id": seed["pizza"], "qty": 1}])
    other = lifecycle.create_order(db, other_admin, pizza, now=DAY)

    assert first.order_number == "ORD-20240115-0001"
    assert second.order_number == "ORD-20240115-0002"
    assert next_day.order_number == "ORD-20240116-0001"
    assert other.order_number == "ORD-20240115-0001"


def test_menu_price_change_does_not_touch_history(db, seed, waiter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    db.get(MenuItem, seed["burger"]).price = Decimal("99.00")
    db.commit()

    again = lifecycle.get_order(db, waiter, o.id)
    assert again.lines[0].unit_price == Decimal("12.00")
    assert again.total == Decimal("29.40")


@pytest.mark.parametrize("bad", ["soup", "pizza", "missing"])
def test_invalid_item_creates_nothing(db, seed, waiter, bad):
    item_id = seed.get(bad, "no-such-item")
    body = OrderCreate(items=[{"item_id": seed["burger"], "qty": 1}, {"item_id": item_id, "qty": 1}])

    with pytest.raises(ItemNotFound) as exc:
        lifecycle.create_order(db, waiter, body, now=DAY)

    assert exc.value.extra["item_ids"] == [item_id]
    assert db.scalar(select(func.count()).select_from(Order)) == 0
    assert db.scalar(select(func.count()).select_from(OrderLine)) == 0


def test_same_item_twice_is_fine(db, seed, waiter):
    body = OrderCreate(items=[{"item_id": seed["burger"], "qty": 1}, {"item_id": seed["burger"], "qty": 3}])
    o = lifecycle.create_order(db, waiter, body, now=DAY)
    assert o.subtotal == Decimal("48.00")


def test_set_status_and_event(db, seed, waiter, emitter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)

    updated = lifecycle.set_status(db, waiter, o.id, OrderStatus.PREPARING, emitter)

    assert updated.status == OrderStatus.PREPARING
    assert emitter.events[-1].name == ORDER_UPDATED
    assert emitter.events[-1].payload == {"order_id": o.id, "status": "preparing"}


def test_permissive_transitions_allow_backwards_moves(db, seed, waiter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    lifecycle.set_status(db, waiter, o.id, OrderStatus.SERVED)
    back = lifecycle.set_status(db, waiter, o.id, OrderStatus.CONFIRMED)
    assert back.status == OrderStatus.CONFIRMED


@pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
@pytest.mark.parametrize("target", list(OrderStatus))
def test_terminal_orders_cannot_move(db, seed, waiter, terminal, target):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    lifecycle.set_status(db, waiter, o.id, terminal)

    with pytest.raises(InvalidTransition):
        lifecycle.set_status(db, waiter, o.id, target)
    assert lifecycle.get_order(db, waiter, o.id).status == terminal


def test_strict_policy(monkeypatch, db, seed, waiter):
    monkeypatch.setattr(settings, "STRICT_STATUS_TRANSITIONS", True)
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)

    lifecycle.set_status(db, waiter, o.id, OrderStatus.PREPARING)
    with pytest.raises(InvalidTransition):
        lifecycle.set_status(db, waiter, o.id, OrderStatus.CONFIRMED)
    with pytest.raises(InvalidTransition):
        lifecycle.set_status(db, waiter, o.id, OrderStatus.PREPARING)
    assert lifecycle.set_status(db, waiter, o.id, OrderStatus.CANCELLED).status == OrderStatus.CANCELLED


def test_allowed_sources():
    assert lifecycle.allowed_sources(OrderStatus.READY, strict=True) == [
        OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING]
    assert OrderStatus.SERVED in lifecycle.allowed_sources(OrderStatus.PENDING, strict=False)
    assert OrderStatus.COMPLETED not in lifecycle.allowed_sources(OrderStatus.PENDING, strict=False)


def test_other_outlet_sees_not_found(db, seed, waiter, other_admin):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)

    with pytest.raises(OrderNotFound) as foreign:
        lifecycle.get_order(db, other_admin, o.id)
    with pytest.raises(OrderNotFound) as missing:
        lifecycle.get_order(db, other_admin, "does-not-exist")
    assert foreign.value.message == missing.value.message

    with pytest.raises(OrderNotFound):
        lifecycle.set_status(db, other_admin, o.id, OrderStatus.CANCELLED)
    assert lifecycle.get_order(db, waiter, o.id).status == OrderStatus.PENDING


def test_emitter_failure_does_not_fail_the_change(db, seed, waiter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), BrokenEmitter(), now=DAY)
    updated = lifecycle.set_status(db, waiter, o.id, OrderStatus.READY, BrokenEmitter())
    assert updated.status == OrderStatus.READY
    assert db.scalar(select(func.count()).select_from(Order)) == 1


def test_list_orders_filters_and_pages(db, seed, waiter, other_admin):
    for i in range(5):
        lifecycle.create_order(db, waiter, burger_and_fries(seed, table_number=f"T{i % 2}"), now=DAY)
    lifecycle.create_order(db, other_admin, OrderCreate(items=[{"item_id": seed["pizza"], "qty": 1}]), now=DAY)
    first = lifecycle.list_orders(db, waiter, page=1, limit=2)
    lifecycle.set_status(db, waiter, first.items[0].id, OrderStatus.CANCELLED)

    assert (first.total, first.pages, len(first.items)) == (5, 3, 2)
    last = lifecycle.list_orders(db, waiter, page=3, limit=2)
    assert len(last.items) == 1
    assert lifecycle.list_orders(db, waiter, table_number="T0").total == 3
    assert lifecycle.list_orders(db, waiter, status=OrderStatus.CANCELLED).total == 1
    assert lifecycle.list_orders(db, other_admin).total == 1


def test_list_orders_date_range(db, seed, waiter):
    lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    now = datetime.now(timezone.utc)
    assert lifecycle.list_orders(db, waiter, date_from=now - timedelta(hours=1)).total == 1
    assert lifecycle.list_orders(db, waiter, date_to=now - timedelta(days=1)).total == 0
    with pytest.raises(ValidationFailed):
        lifecycle.list_orders(db, waiter, date_from=now, date_to=now - timedelta(days=1))


def test_list_orders_rejects_huge_pages(db, seed, waiter):
    with pytest.raises(ValidationFailed):
        lifecycle.list_orders(db, waiter, limit=settings.MAX_PAGE_SIZE + 1)


def test_line_status_is_independent(db, seed, waiter, emitter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    line = o.lines[0]

    updated = lifecycle.set_line_status(db, waiter, o.id, line.id, LineStatus.READY, emitter)

    assert updated.lines[0].status == LineStatus.READY
    assert updated.lines[1].status == LineStatus.PENDING
    assert updated.status == OrderStatus.PENDING
    assert emitter.events[-1].payload["line_status"] == "ready"
    with pytest.raises(NotFound):
        lifecycle.set_line_status(db, waiter, o.id, "nope", LineStatus.READY)

    lifecycle.set_status(db, waiter, o.id, OrderStatus.CANCELLED)
    with pytest.raises(InvalidTransition):
        lifecycle.set_line_status(db, waiter, o.id, line.id, LineStatus.SERVED)


def test_kitchen_ticket_flag_set_once(db, seed, waiter):
    o = lifecycle.create_order(db, waiter, burger_and_fries(seed), now=DAY)
    assert not o.kot_generated

    lifecycle.mark_kitchen_ticket(db, waiter, o.id)
    first = lifecycle.get_order(db, waiter, o.id)
    stamp = first.kot_generated_at
    second = lifecycle.mark_kitchen_ticket(db, waiter, o.id)

    assert first.kot_generated and stamp is not None
    assert second.kot_generated_at == stamp
