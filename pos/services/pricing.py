from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from pos.errors import ValidationFailed
from pos.models.core import DiscountType

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def _dec(x) -> Decimal:
    # go through str so floats don't drag binary artifacts in
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x if x is not None else 0))


def _money(x) -> Decimal:
    try:
        return _dec(x).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the context precision can hold at cent scale
        raise ValidationFailed.field("amount", "Amount is out of range")


@dataclass(frozen=True)
class LineInput:
    unit_price: Decimal
    qty: int
    modifiers: Mapping[str, Iterable[Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class DiscountSpec:
    type: DiscountType = DiscountType.FIXED
    value: Decimal = Decimal("0")


@dataclass(frozen=True)
class PricedLine:
    unit_price: Decimal
    modifier_total: Decimal
    effective_price: Decimal
    qty: int
    line_total: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    lines: tuple[PricedLine, ...] = ()

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "total": self.total,
        }


def modifier_total(modifiers: Mapping[str, Iterable[Any]] | None) -> Decimal:
    """
    Sum every selected modifier price across all groups.

    Groups map a name to a list of selections; a selection is a dict with a
    ``price`` key or any object with a ``price`` attribute. Min/max selection
    rules are not checked here.
    """
    total = Decimal("0")
    for selections in (modifiers or {}).values():
        if not isinstance(selections, (list, tuple)):
            continue
        for sel in selections:
            price = sel.get("price") if isinstance(sel, Mapping) else getattr(sel, "price", None)
            if price is None:
                continue
            price = _dec(price)
            if price < 0:
                raise ValidationFailed.field("modifiers", "Modifier price cannot be negative")
            total += price
    return total


def price_line(line: LineInput) -> PricedLine:
    unit = _dec(line.unit_price)
    if unit < 0:
        raise ValidationFailed.field("unit_price", "Price cannot be negative")
    if int(line.qty) < 1:
        raise ValidationFailed.field("qty", "Quantity must be at least 1")
    mods = modifier_total(line.modifiers)
    effective = unit + mods
    return PricedLine(
        unit_price=_money(unit),
        modifier_total=_money(mods),
        effective_price=_money(effective),
        qty=int(line.qty),
        line_total=_money(effective * int(line.qty)),
    )


def compute_totals(lines: Iterable[LineInput], discount: DiscountSpec | None = None,
                   tax_rate_percent=0) -> Totals:
    discount = discount or DiscountSpec()
    tax_rate = _dec(tax_rate_percent)
    value = _dec(discount.value)
    if tax_rate < 0 or tax_rate > HUNDRED:
        raise ValidationFailed.field("tax_rate", "Tax rate must be between 0 and 100")
    if value < 0:
        raise ValidationFailed.field("discount", "Discount cannot be negative")

    priced = tuple(price_line(l) for l in lines)
    subtotal = _money(sum((p.line_total for p in priced), Decimal("0")))

    # clamp first, then quantize
    if discount.type == DiscountType.PERCENTAGE:
        discount_amount = _money(subtotal * min(value, HUNDRED) / HUNDRED)
    else:
        discount_amount = _money(min(value, subtotal))

    tax_amount = _money((subtotal - discount_amount) * tax_rate / HUNDRED)
    # built from the quantized parts so the identity holds to the cent
    total = subtotal - discount_amount + tax_amount

    return Totals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
        lines=priced,
    )
