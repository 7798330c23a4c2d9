"""
Payment reconciliation.

``Order.amount_paid`` is the running sum of completed and processing
payments. It only ever changes through a compare-and-swap on the value that
was read, so two concurrent payments cannot both pass the remaining-balance
check: the loser re-reads and re-validates against the new balance.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pos.config import settings
from pos.errors import Conflict, InvalidTransition, OverpaymentRejected, PaymentNotFound, ValidationFailed
from pos.models.core import Order, OrderStatus, PayMethod, Payment, PaymentStatus, SETTLING_PAYMENT_STATUSES
from pos.principal import Principal
from pos.schemas.orders import PaymentIn
from pos.services import orders as lifecycle
from pos.services.events import Emitter, publish
from pos.services.pricing import CENT, _dec, _money

logger = logging.getLogger(__name__)


def _swap_paid(db: Session, order: Order, seen: Decimal, new: Decimal) -> bool:
    res = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.outlet_id == order.outlet_id, Order.amount_paid == seen)
        .values(amount_paid=new)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def paid_total(payments) -> Decimal:
    """Sum of the payments that count against the order total."""
    return _money(sum((_money(p.amount) for p in payments if p.status in SETTLING_PAYMENT_STATUSES), Decimal("0")))


def record_payment(db: Session, principal: Principal, order_id: str, body: PaymentIn,
                   emitter: Emitter | None = None) -> Payment:
    # the caller's amount is compared as given, never rounded
    amount = _dec(body.amount)
    if amount <= 0:
        raise ValidationFailed.field("amount", "Amount must be a positive number")

    for attempt in range(1, settings.PAYMENT_RETRIES + 1):
        order = lifecycle.get_order(db, principal, order_id, for_update=True)
        if order.status == OrderStatus.CANCELLED:
            db.rollback()
            raise InvalidTransition(order.status.value, OrderStatus.COMPLETED.value)

        paid_so_far = _money(order.amount_paid)
        total = _money(order.total)
        remaining = total - paid_so_far
        if amount > remaining:
            db.rollback()
            logger.info("overpayment rejected on %s: amount=%s remaining=%s", order.order_number, amount, remaining)
            raise OverpaymentRejected(remaining)

        if amount != amount.quantize(CENT):
            db.rollback()
            raise ValidationFailed.field("amount", "Amount cannot have more than 2 decimal places")

        new_paid = paid_so_far + amount
        if not _swap_paid(db, order, paid_so_far, new_paid):
            db.rollback()
            logger.info("concurrent payment on %s, re-validating (attempt %d)", order.order_number, attempt)
            continue

        payment = Payment(
            order_id=order.id,
            method=PayMethod(body.method),
            amount=amount,
            status=PaymentStatus.COMPLETED,
            transaction_id=body.transaction_id,
            notes=body.notes,
            processed_by=principal.id,
            paid_at=datetime.now(timezone.utc),
        )
        db.add(payment)

        completed = False
        if new_paid >= total:
            completed = lifecycle.apply_status(
                db, order.id, order.outlet_id, OrderStatus.COMPLETED, lifecycle.ACTIVE_STATUSES
            )
        db.commit()
        break
    else:
        raise Conflict("Order payments changed concurrently, please retry")

    logger.info("payment %s of %s on %s via %s by %s", payment.id, amount, order.order_number, payment.method.value, principal.id)
    if completed:
        order = lifecycle.get_order(db, principal, order_id)
        logger.info("order %s fully paid, completed", order.order_number)
        publish(emitter, lifecycle.order_event(order))
    return payment


def list_payments(db: Session, principal: Principal, order_id: str) -> list[Payment]:
    order = lifecycle.get_order(db, principal, order_id)
    return list(order.payments)


def refund_payment(db: Session, principal: Principal, order_id: str, payment_id: str) -> Payment:
    """Mark a completed payment refunded and release its amount from the running total."""
    for attempt in range(1, settings.PAYMENT_RETRIES + 1):
        order = lifecycle.get_order(db, principal, order_id, for_update=True)
        payment = db.scalars(
            select(Payment)
            .where(Payment.id == payment_id, Payment.order_id == order.id)
            .execution_options(populate_existing=True)
        ).first()
        if not payment:
            raise PaymentNotFound(payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            db.rollback()
            raise InvalidTransition(payment.status.value, PaymentStatus.REFUNDED.value)

        paid_so_far = _money(order.amount_paid)
        new_paid = max(paid_so_far - _money(payment.amount), Decimal("0.00"))
        if not _swap_paid(db, order, paid_so_far, new_paid):
            db.rollback()
            continue
        res = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.COMPLETED)
            .values(status=PaymentStatus.REFUNDED, refunded_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.rollback()
            continue
        db.commit()
        break
    else:
        raise Conflict("Payment changed concurrently, please retry")

    db.refresh(payment)
    logger.info("payment %s on %s refunded by %s", payment.id, order.order_number, principal.id)
    return payment
