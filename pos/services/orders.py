"""
Order lifecycle: creation with server-side pricing, numbering, status changes.

Every query is scoped by the acting principal's outlet, so an order belonging
to another outlet behaves exactly like a missing one.
"""
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pos.config import settings
from pos.errors import Conflict, InvalidTransition, ItemNotFound, NotFound, OrderNotFound, ValidationFailed
from pos.models.core import (
    DiscountType, LineStatus, Order, OrderLine, OrderSequence, OrderStatus, OrderType,
    STATUS_SEQUENCE, TERMINAL_STATUSES,
)
from pos.principal import Principal
from pos.schemas.orders import OrderCreate, OrderLineOut, OrderOut
from pos.services import catalog
from pos.services.events import ORDER_CREATED, ORDER_UPDATED, Emitter, Event, publish
from pos.services.pricing import CENT, DiscountSpec, LineInput, compute_totals

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [s for s in OrderStatus if s not in TERMINAL_STATUSES]


@dataclass
class Page:
    items: list[Order]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


# ---------- numbering ----------

def business_day(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(settings.TZ)).strftime("%Y%m%d")


def format_order_number(day: str, seq: int) -> str:
    return f"ORD-{day}-{seq:04d}"


def next_sequence(db: Session, outlet_id: str, day: str) -> int:
    """
    Increment-and-read of the (outlet, day) counter inside the caller's
    transaction. The UPDATE takes the row (or table) write lock, so two
    creations for the same outlet-day serialize here. A first-of-day race on
    the INSERT surfaces as IntegrityError and is retried by the caller.
    """
    res = db.execute(
        update(OrderSequence)
        .where(OrderSequence.outlet_id == outlet_id, OrderSequence.day == day)
        .values(last_no=OrderSequence.last_no + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.add(OrderSequence(outlet_id=outlet_id, day=day, last_no=1))
        db.flush()
        return 1
    return db.scalar(
        select(OrderSequence.last_no).where(OrderSequence.outlet_id == outlet_id, OrderSequence.day == day)
    )


# ---------- transitions ----------

def allowed_sources(new: OrderStatus, strict: bool | None = None) -> list[OrderStatus]:
    """Statuses an order may currently be in for a move to ``new`` to be legal."""
    strict = settings.STRICT_STATUS_TRANSITIONS if strict is None else strict
    if not strict or new == OrderStatus.CANCELLED:
        return list(ACTIVE_STATUSES)
    idx = STATUS_SEQUENCE.index(new)
    return [s for s in STATUS_SEQUENCE[:idx] if s not in TERMINAL_STATUSES]


def apply_status(db: Session, order_id: str, outlet_id: str, new: OrderStatus,
                 sources: list[OrderStatus]) -> bool:
    """Conditional write guarded on the current status; no commit."""
    res = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.outlet_id == outlet_id, Order.status.in_(sources))
        .values(status=new)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def order_event(order: Order) -> Event:
    return Event(ORDER_UPDATED, order.outlet_id, {"order_id": order.id, "status": order.status.value})


# ---------- reads ----------

def get_order(db: Session, principal: Principal, order_id: str, *, for_update: bool = False) -> Order:
    q = (
        select(Order)
        .where(Order.id == order_id, Order.outlet_id == principal.outlet_id)
        .options(selectinload(Order.lines), selectinload(Order.payments))
        .execution_options(populate_existing=True)
    )
    if for_update:
        q = q.with_for_update()
    o = db.scalars(q).first()
    if not o:
        raise OrderNotFound(order_id)
    return o


def list_orders(
    db: Session,
    principal: Principal,
    *,
    status: OrderStatus | None = None,
    table_number: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    page = max(int(page or 1), 1)
    limit = int(limit or settings.DEFAULT_PAGE_SIZE)
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationFailed.field("limit", f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
    if date_from and date_to and date_from > date_to:
        raise ValidationFailed.field("start_date", "start_date must not be after end_date")

    conds = [Order.outlet_id == principal.outlet_id]
    if status:
        conds.append(Order.status == status)
    if table_number:
        conds.append(Order.table_number == table_number)
    if date_from:
        conds.append(Order.created_at >= date_from)
    if date_to:
        conds.append(Order.created_at <= date_to)

    total = db.scalar(select(func.count()).select_from(Order).where(*conds)) or 0
    rows = db.scalars(
        select(Order)
        .where(*conds)
        .options(selectinload(Order.lines))
        .order_by(Order.created_at.desc(), Order.order_number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return Page(items=list(rows), total=total, page=page, limit=limit)


# ---------- writes ----------

def create_order(db: Session, principal: Principal, body: OrderCreate,
                 emitter: Emitter | None = None, now: datetime | None = None) -> Order:
    items = catalog.active_items(db, principal.outlet_id, [l.item_id for l in body.items])
    missing = [l.item_id for l in body.items if l.item_id not in items]
    if missing:
        raise ItemNotFound(missing)

    # catalog prices only; whatever the client thinks an item costs is ignored
    totals = compute_totals(
        [LineInput(unit_price=items[l.item_id].price, qty=l.qty, modifiers=l.modifiers_snapshot()) for l in body.items],
        DiscountSpec(type=DiscountType(body.discount_type), value=body.discount),
        body.tax_rate,
    )
    day = business_day(now)

    for attempt in range(1, settings.ORDER_NUMBER_RETRIES + 1):
        try:
            seq = next_sequence(db, principal.outlet_id, day)
            order = Order(
                outlet_id=principal.outlet_id,
                order_number=format_order_number(day, seq),
                status=OrderStatus.PENDING,
                order_type=OrderType(body.order_type),
                subtotal=totals.subtotal,
                discount_type=DiscountType(body.discount_type),
                discount_value=body.discount.quantize(CENT),
                discount_amount=totals.discount_amount,
                tax_rate=body.tax_rate.quantize(CENT),
                tax_amount=totals.tax_amount,
                total=totals.total,
                amount_paid=Decimal("0.00"),
                table_number=body.table_number,
                notes=body.notes,
                client_ref=body.client_ref,
                created_by=principal.id,
            )
            for position, (line, priced) in enumerate(zip(body.items, totals.lines)):
                menu_item = items[line.item_id]
                order.lines.append(OrderLine(
                    position=position,
                    item_id=menu_item.id,
                    item_name=menu_item.name,
                    unit_price=priced.unit_price,
                    modifiers=line.modifiers_snapshot(),
                    modifier_total=priced.modifier_total,
                    effective_price=priced.effective_price,
                    quantity=priced.qty,
                    line_total=priced.line_total,
                    notes=line.notes,
                    status=LineStatus.PENDING,
                ))
            db.add(order)
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            logger.info("order number collision for outlet %s day %s (attempt %d)", principal.outlet_id, day, attempt)
    else:
        raise Conflict("Could not allocate a unique order number")

    logger.info("order %s created by %s total=%s", order.order_number, principal.id, order.total)
    publish(emitter, Event(ORDER_CREATED, order.outlet_id, {
        "order": OrderOut.model_validate(order).model_dump(mode="json", exclude={"lines"}),
        "lines": [OrderLineOut.model_validate(l).model_dump(mode="json") for l in order.lines],
    }))
    return order


def set_status(db: Session, principal: Principal, order_id: str, new: OrderStatus,
               emitter: Emitter | None = None) -> Order:
    order = get_order(db, principal, order_id)
    current = order.status
    if not apply_status(db, order.id, principal.outlet_id, new, allowed_sources(new)):
        db.rollback()
        # re-read: the order may have moved on since we loaded it
        current = get_order(db, principal, order_id).status
        raise InvalidTransition(current.value, new.value)
    db.commit()
    order = get_order(db, principal, order_id)
    logger.info("order %s status %s -> %s by %s", order.order_number, current.value, new.value, principal.id)
    publish(emitter, order_event(order))
    return order


def set_line_status(db: Session, principal: Principal, order_id: str, line_id: str,
                    new: LineStatus, emitter: Emitter | None = None) -> Order:
    order = get_order(db, principal, order_id)
    line = next((l for l in order.lines if l.id == line_id), None)
    if not line:
        raise NotFound("Order item not found", line_id=line_id)
    if order.status in TERMINAL_STATUSES:
        raise InvalidTransition(order.status.value, new.value)
    line.status = new
    db.commit()
    publish(emitter, Event(ORDER_UPDATED, order.outlet_id, {
        "order_id": order.id, "status": order.status.value, "line_id": line.id, "line_status": new.value,
    }))
    return order


def mark_kitchen_ticket(db: Session, principal: Principal, order_id: str) -> Order:
    order = get_order(db, principal, order_id)
    if order.kot_generated:
        return order
    if order.status == OrderStatus.CANCELLED:
        raise InvalidTransition(order.status.value, "kot")
    order.kot_generated = True
    order.kot_generated_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("kitchen ticket generated for %s", order.order_number)
    return order
