"""Checkout arithmetic shared by sales and quotations."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from posapp.exceptions import ValidationError


DECIMAL_QUANT = Decimal("0.01")
PRICE_TYPES = ("retail", "wholesale")
DISCOUNT_TYPES = ("fixed", "percent")


def to_decimal(value, *, field_name: str = "amount") -> Decimal:
    """Parse user input into a ``Decimal``; blank input counts as zero."""

    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Enter a valid number for {field_name}.")


def round2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(DECIMAL_QUANT, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    return f"{round2(to_decimal(value)):.2f}"


@dataclass
class CartLine:
    product_id: int
    name: str
    qty: int
    cost_price: Decimal
    retail_price: Decimal
    wholesale_price: Decimal

    def unit_price(self, price_type: str) -> Decimal:
        if price_type == "wholesale":
            return self.wholesale_price
        return self.retail_price


@dataclass
class CartTotals:
    items: list[dict] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    delivery_charge: Decimal = Decimal("0")
    discount_type: str = "fixed"
    discount_value: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    total_qty: int = 0


def check_price_type(price_type: str) -> str:
    if price_type not in PRICE_TYPES:
        raise ValidationError(f"Unknown customer type '{price_type}'.")
    return price_type


def resolve_discount(subtotal, discount_type: str, value) -> Decimal:
    """Percent discounts apply to the subtotal only, never to delivery."""

    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"Unknown discount type '{discount_type}'.")
    amount = to_decimal(value, field_name="discount")
    if discount_type == "percent":
        amount = to_decimal(subtotal) * amount / Decimal("100")
    return round2(amount)


def compute_totals(
    lines: Iterable[CartLine],
    price_type: str = "retail",
    *,
    delivery_charge=0,
    discount_type: str = "fixed",
    discount_value=0,
) -> CartTotals:
    """Recompute every figure of a checkout from the cart contents.

    The total is clamped at zero; profit is not, so a discount larger than
    the margin shows up as a loss.
    """

    check_price_type(price_type)
    delivery = round2(to_decimal(delivery_charge, field_name="delivery charge"))

    items: list[dict] = []
    subtotal = Decimal("0")
    gross_profit = Decimal("0")
    total_qty = 0
    for line in lines:
        price = line.unit_price(price_type)
        line_total = price * line.qty
        subtotal += line_total
        gross_profit += (price - (line.cost_price or Decimal("0"))) * line.qty
        total_qty += line.qty
        items.append(
            {
                "product_id": line.product_id,
                "name": line.name,
                "qty": line.qty,
                "unit_price": money_str(price),
                "cost_price": money_str(line.cost_price),
                "total": money_str(line_total),
            }
        )

    discount_amount = resolve_discount(subtotal, discount_type, discount_value)
    total = max(Decimal("0"), subtotal + delivery - discount_amount)

    return CartTotals(
        items=items,
        subtotal=round2(subtotal),
        delivery_charge=delivery,
        discount_type=discount_type,
        discount_value=to_decimal(discount_value, field_name="discount"),
        discount_amount=discount_amount,
        total=round2(total),
        profit=round2(gross_profit - discount_amount),
        total_qty=total_qty,
    )
