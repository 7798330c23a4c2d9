from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pos.db import get_db
from pos.deps import get_emitter, require_perm
from pos.models.core import LineStatus, OrderStatus
from pos.principal import Principal
from pos.rbac import Perm
from pos.schemas.common import Pagination
from pos.schemas.orders import (
    LineStatusIn, OrderCreate, OrderDetailOut, OrderOut, OrderPage, OrderStatusLiteral,
    PaymentIn, PaymentOut, PaymentResult, StatusIn,
)
from pos.services import orders as lifecycle
from pos.services import payments
from pos.services.events import Emitter

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.ORDERS_CREATE)),
    emitter: Emitter = Depends(get_emitter),
):
    return lifecycle.create_order(db, principal, body, emitter)


@router.get("/", response_model=OrderPage)
def list_orders(
    status: Optional[OrderStatusLiteral] = None,
    table_number: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.ORDERS_VIEW)),
):
    """
    Orders of the caller's outlet, newest first.

    Query params:
      - status, table_number: exact matches (optional)
      - start_date / end_date: ISO timestamps bounding created_at
      - page (1-based), limit
    """
    p = lifecycle.list_orders(
        db, principal,
        status=OrderStatus(status) if status else None,
        table_number=table_number,
        date_from=start_date,
        date_to=end_date,
        page=page,
        limit=limit,
    )
    return OrderPage(
        items=[OrderOut.model_validate(o) for o in p.items],
        pagination=Pagination(total=p.total, page=p.page, limit=p.limit, pages=p.pages),
    )


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.ORDERS_VIEW)),
):
    return lifecycle.get_order(db, principal, order_id)


@router.put("/{order_id}/status", response_model=OrderOut)
def set_status(
    order_id: str,
    body: StatusIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.ORDERS_UPDATE)),
    emitter: Emitter = Depends(get_emitter),
):
    return lifecycle.set_status(db, principal, order_id, OrderStatus(body.status), emitter)


@router.put("/{order_id}/items/{line_id}/status", response_model=OrderOut)
def set_line_status(
    order_id: str,
    line_id: str,
    body: LineStatusIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.ORDERS_UPDATE)),
    emitter: Emitter = Depends(get_emitter),
):
    return lifecycle.set_line_status(db, principal, order_id, line_id, LineStatus(body.status), emitter)


@router.post("/{order_id}/kot", response_model=OrderOut)
def generate_kot(
    order_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.ORDERS_UPDATE)),
):
    return lifecycle.mark_kitchen_ticket(db, principal, order_id)


@router.post("/{order_id}/payment", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
def pay(
    order_id: str,
    body: PaymentIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.PAYMENTS_PROCESS)),
    emitter: Emitter = Depends(get_emitter),
):
    p = payments.record_payment(db, principal, order_id, body, emitter)
    o = lifecycle.get_order(db, principal, order_id)
    return PaymentResult(
        payment=PaymentOut.model_validate(p),
        order_status=o.status,
        amount_paid=o.amount_paid,
        balance=o.total - o.amount_paid,
    )


@router.get("/{order_id}/payments", response_model=list[PaymentOut])
def list_payments(
    order_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.PAYMENTS_VIEW)),
):
    return payments.list_payments(db, principal, order_id)


@router.post("/{order_id}/payments/{payment_id}/refund", response_model=PaymentOut)
def refund(
    order_id: str,
    payment_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.PAYMENTS_REFUND)),
):
    return payments.refund_payment(db, principal, order_id, payment_id)
