# test_concurrency.py
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal

from pos.db import SessionLocal
from pos.errors import OverpaymentRejected
from pos.models.core import OrderStatus
from pos.schemas.orders import OrderCreate, PaymentIn
from pos.services import orders as lifecycle
from pos.services import payments

DAY = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def run_together(n, fn):
    """Run ``fn(session)`` in n threads released at the same moment; returns results or exceptions."""
    barrier = threading.Barrier(n)

    def worker(_):
        s = SessionLocal()
        try:
            barrier.wait()
            return fn(s)
        except Exception as e:
            return e
        finally:
            s.close()

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(worker, range(n)))


def test_simultaneous_creations_get_distinct_numbers(seed, waiter, admin):
    body = OrderCreate(items=[{"item_id": seed["burger"], "qty": 1}])

    results = run_together(4, lambda s: lifecycle.create_order(s, waiter, body, now=DAY).order_number)

    assert sorted(results) == [f"ORD-20240301-000{i}" for i in range(1, 5)]


def test_simultaneous_payments_never_overpay(db, seed, waiter, cashier):
    body = OrderCreate(
        items=[
            {"item_id": seed["burger"], "qty": 2},
            {"item_id": seed["fries"], "qty": 1, "modifiers": {"Dips": [{"name": "Cheese", "price": "1.00"}]}},
        ],
        discount="1", tax_rate="5",
    )
    order = lifecycle.create_order(db, waiter, body)
    assert order.total == Decimal("29.40")

    results = run_together(
        2, lambda s: payments.record_payment(s, cashier, order.id, PaymentIn(method="cash", amount=Decimal("20.00")))
    )

    rejected = [r for r in results if isinstance(r, OverpaymentRejected)]
    accepted = [r for r in results if not isinstance(r, Exception)]
    assert len(accepted) == 1 and len(rejected) == 1
    assert rejected[0].remaining == Decimal("9.40")

    o = lifecycle.get_order(db, cashier, order.id)
    assert o.amount_paid == Decimal("20.00")
    assert payments.paid_total(o.payments) == Decimal("20.00")
    assert o.status == OrderStatus.PENDING
