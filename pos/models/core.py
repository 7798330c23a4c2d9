from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from pos.db import Base
from pos.models.common import IdMixin, TSMMixin
from pos.rbac import Role

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# forward order of the active chain, used by the strict transition policy
STATUS_SEQUENCE = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.COMPLETED,
]

class OrderType(str, PyEnum):
    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"

class DiscountType(str, PyEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class LineStatus(str, PyEnum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"

class PayMethod(str, PyEnum):
    CARD = "card"
    UPI = "upi"
    CASH = "cash"
    WALLET = "wallet"

class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

# statuses whose amounts count against the order total
SETTLING_PAYMENT_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.PROCESSING})

# ── Identity ────────────────────────────────────────────────────────────────
class Outlet(Base, IdMixin, TSMMixin):
    __tablename__ = "outlet"
    name: Mapped[str] = mapped_column(String(160))
    phone: Mapped[str | None] = mapped_column(String(20))
    address: Mapped[str | None] = mapped_column(Text)
    business_type: Mapped[str | None] = mapped_column(String(40))

class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    outlet_id: Mapped[str] = mapped_column(String(36), ForeignKey("outlet.id"), index=True)
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(160), unique=True)
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[Role] = mapped_column(Enum(Role), default=Role.WAITER)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

# ── Menu ────────────────────────────────────────────────────────────────────
class MenuCategory(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_category"
    outlet_id: Mapped[str] = mapped_column(String(36), ForeignKey("outlet.id"), index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(String(500))
    display_order: Mapped[int] = mapped_column(default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    outlet_id: Mapped[str] = mapped_column(String(36), ForeignKey("outlet.id"), index=True)
    category_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_category.id"))
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(String(1000))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    image: Mapped[str | None] = mapped_column(String(400))
    sku: Mapped[str | None] = mapped_column(String(60))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # [{name, min_selection, max_selection, modifiers: [{name, price, is_required}]}]
    modifier_groups: Mapped[list] = mapped_column(JSON, default=list)

    __table_args__ = (UniqueConstraint("outlet_id", "sku", name="uq_menu_item_outlet_sku"),)

# ── Orders / lines / payments ───────────────────────────────────────────────
class OrderSequence(Base, TSMMixin):
    __tablename__ = "order_sequence"
    outlet_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    day: Mapped[str] = mapped_column(String(8), primary_key=True)  # YYYYMMDD
    last_no: Mapped[int] = mapped_column(Integer, default=0)

class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    outlet_id: Mapped[str] = mapped_column(String(36), ForeignKey("outlet.id"))
    order_number: Mapped[str] = mapped_column(String(20))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    order_type: Mapped[OrderType] = mapped_column(Enum(OrderType), default=OrderType.DINE_IN)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    discount_type: Mapped[DiscountType] = mapped_column(Enum(DiscountType), default=DiscountType.FIXED)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)   # as requested
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)  # as applied
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)  # completed + processing
    table_number: Mapped[str | None] = mapped_column(String(20))
    notes: Mapped[str | None] = mapped_column(String(500))
    client_ref: Mapped[str | None] = mapped_column(String(80))
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    kot_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    kot_generated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderLine.position"
    )
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="Payment.created_at"
    )

    __table_args__ = (
        UniqueConstraint("outlet_id", "order_number", name="uq_order_outlet_number"),
        Index("ix_order_outlet_created", "outlet_id", "created_at"),
        Index("ix_order_outlet_status", "outlet_id", "status"),
    )

class OrderLine(Base, IdMixin, TSMMixin):
    __tablename__ = "order_line"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    # snapshot at order time, never follows later menu edits
    item_name: Mapped[str] = mapped_column(String(200))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    modifiers: Mapped[dict] = mapped_column(JSON, default=dict)
    modifier_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    effective_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    notes: Mapped[str | None] = mapped_column(String(200))
    status: Mapped[LineStatus] = mapped_column(Enum(LineStatus), default=LineStatus.PENDING)

    order: Mapped[Order] = relationship(back_populates="lines")

class Payment(Base, IdMixin, TSMMixin):
    __tablename__ = "payment"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id", ondelete="CASCADE"), index=True)
    method: Mapped[PayMethod] = mapped_column(Enum(PayMethod))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    transaction_id: Mapped[str | None] = mapped_column(String(120))
    notes: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    order: Mapped[Order] = relationship(back_populates="payments")
