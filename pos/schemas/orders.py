from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from pos.models.core import OrderStatus, OrderType, DiscountType, LineStatus, PayMethod, PaymentStatus
from pos.schemas.common import Pagination

OrderTypeLiteral = Literal["dine-in", "takeaway", "delivery"]
DiscountTypeLiteral = Literal["percentage", "fixed"]
OrderStatusLiteral = Literal["pending", "confirmed", "preparing", "ready", "served", "completed", "cancelled"]
LineStatusLiteral = Literal["pending", "preparing", "ready", "served"]
PayMethodLiteral = Literal["card", "upi", "cash", "wallet"]


class ModifierSelection(BaseModel):
    name: str
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)


class OrderLineIn(BaseModel):
    item_id: str
    qty: int = Field(ge=1)
    # group name -> selected modifiers
    modifiers: dict[str, list[ModifierSelection]] = Field(default_factory=dict)
    notes: Optional[str] = Field(default=None, max_length=200)

    def modifiers_snapshot(self) -> dict:
        return {
            group: [{"name": m.name, "price": str(m.price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))} for m in sel]
            for group, sel in self.modifiers.items()
        }


class OrderCreate(BaseModel):
    items: list[OrderLineIn] = Field(min_length=1)
    order_type: OrderTypeLiteral = "dine-in"
    table_number: Optional[str] = Field(default=None, max_length=20)
    client_ref: Optional[str] = Field(default=None, max_length=80)
    notes: Optional[str] = Field(default=None, max_length=500)
    discount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    discount_type: DiscountTypeLiteral = "fixed"
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100, max_digits=5, decimal_places=2)


class StatusIn(BaseModel):
    status: OrderStatusLiteral


class LineStatusIn(BaseModel):
    status: LineStatusLiteral


class PaymentIn(BaseModel):
    method: PayMethodLiteral
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    transaction_id: Optional[str] = Field(default=None, max_length=120)
    notes: Optional[str] = Field(default=None, max_length=500)


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    item_id: str
    item_name: str
    unit_price: Decimal
    modifiers: dict
    modifier_total: Decimal
    effective_price: Decimal
    quantity: int
    line_total: Decimal
    notes: Optional[str] = None
    status: LineStatus


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    order_id: str
    method: PayMethod
    amount: Decimal
    status: PaymentStatus
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    processed_by: str
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    order_number: str
    outlet_id: str
    status: OrderStatus
    order_type: OrderType
    subtotal: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    table_number: Optional[str] = None
    notes: Optional[str] = None
    client_ref: Optional[str] = None
    created_by: str
    kot_generated: bool
    kot_generated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    lines: list[OrderLineOut] = []

    @computed_field
    @property
    def balance(self) -> Decimal:
        return self.total - self.amount_paid


class OrderDetailOut(OrderOut):
    payments: list[PaymentOut] = []


class OrderPage(BaseModel):
    items: list[OrderOut]
    pagination: Pagination


class PaymentResult(BaseModel):
    payment: PaymentOut
    order_status: OrderStatus
    amount_paid: Decimal
    balance: Decimal
