"""Draft orders. Quotations never touch stock until converted into a sale."""

from __future__ import annotations

import logging
from datetime import datetime

from posapp.exceptions import NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import Quotation, Sale
from posapp.services import sales, sync_bus
from posapp.services.cart import Cart
from posapp.services.pricing import compute_totals
from posapp.services.sequence import get_next_quotation_no, increment_quotation_no
from posapp.storage import atomic


logger = logging.getLogger("posapp.quotations")

QUOTATION_FIELDS = (
    "quotation_no",
    "date",
    "customer_type",
    "customer_name",
    "customer_address",
    "items",
    "total_amount",
    "delivery_charge",
    "discount_type",
    "discount_value",
    "discount_amount",
)


def get_quotation(quotation_id: int) -> Quotation:
    quotation = db.session.get(Quotation, quotation_id)
    if quotation is None:
        raise NotFoundError(f"Quotation {quotation_id} does not exist.")
    return quotation


def list_quotations(search: str | None = None) -> list[Quotation]:
    query = Quotation.query
    if search:
        query = query.filter(Quotation.quotation_no.ilike(f"%{search.strip()}%"))
    return query.order_by(Quotation.id.desc()).all()


def _apply(quotation: Quotation, data: dict) -> None:
    for key in QUOTATION_FIELDS:
        if key in data:
            setattr(quotation, key, data[key])


def create_quotation(data: dict) -> Quotation:
    if not data.get("items"):
        raise ValidationError("A quotation needs at least one item.")
    if not data.get("quotation_no"):
        raise ValidationError("A quotation needs a quotation number.")

    with atomic("quotation creation"):
        quotation = Quotation()
        _apply(quotation, data)
        db.session.add(quotation)
        db.session.flush()
        quotation_no = quotation.quotation_no

    logger.info("Saved quotation %s", quotation_no)
    sync_bus.publish_refresh("quotations")
    return quotation


def update_quotation(quotation_id: int, data: dict) -> Quotation:
    if "items" in data and not data["items"]:
        raise ValidationError("A quotation needs at least one item.")

    with atomic("quotation update"):
        quotation = get_quotation(quotation_id)
        _apply(quotation, data)

    sync_bus.publish_refresh("quotations")
    return quotation


def delete_quotation(quotation_id: int) -> None:
    with atomic("quotation deletion"):
        quotation = get_quotation(quotation_id)
        quotation_no = quotation.quotation_no
        db.session.delete(quotation)

    logger.info("Deleted quotation %s", quotation_no)
    sync_bus.publish_refresh("quotations")


def build_quotation_data(
    cart: Cart,
    *,
    delivery_charge=0,
    discount_type: str = "fixed",
    discount_value=0,
    customer_name: str = "",
    customer_address: str = "",
) -> dict:
    if cart.is_empty():
        raise ValidationError("Cart is empty.")

    totals = compute_totals(
        cart.lines,
        cart.price_type,
        delivery_charge=delivery_charge,
        discount_type=discount_type,
        discount_value=discount_value,
    )
    return {
        "date": datetime.now(),
        "customer_type": cart.price_type,
        "customer_name": (customer_name or "").strip(),
        "customer_address": (customer_address or "").strip(),
        "items": totals.items,
        "total_amount": totals.total,
        "delivery_charge": totals.delivery_charge,
        "discount_type": totals.discount_type,
        "discount_value": totals.discount_value,
        "discount_amount": totals.discount_amount,
    }


def save_quotation(cart: Cart, *, quotation_id: int | None = None, **options) -> Quotation:
    """Save the cart as a new quotation, or overwrite ``quotation_id``.

    Only a brand-new quotation confirms the allocated number; updates keep
    their existing number and leave the counter alone.
    """

    data = build_quotation_data(cart, **options)

    if quotation_id is not None:
        return update_quotation(quotation_id, data)

    with atomic("quotation creation"):
        data["quotation_no"] = get_next_quotation_no()
        quotation = Quotation()
        _apply(quotation, data)
        db.session.add(quotation)
        increment_quotation_no()
        db.session.flush()

    logger.info("Saved quotation %s", data["quotation_no"])
    sync_bus.publish_refresh("quotations")
    return quotation


def load_quotation_cart(quotation_id: int) -> tuple[Cart, Quotation]:
    """Load a quotation into a cart at CURRENT product prices, not quoted ones."""

    quotation = get_quotation(quotation_id)
    return Cart.from_items(quotation.items, quotation.customer_type), quotation


def convert_to_sale(quotation_id: int, *, discard_quotation: bool = False, **options) -> Sale:
    """Run a quotation through checkout at today's prices.

    Delivery, discount and customer details default to the quotation's own
    values. Products removed since quoting are left out of the sale.
    """

    cart, quotation = load_quotation_cart(quotation_id)
    options.setdefault("delivery_charge", quotation.delivery_charge)
    options.setdefault("discount_type", quotation.discount_type or "fixed")
    options.setdefault("discount_value", quotation.discount_value)
    options.setdefault("customer_name", quotation.customer_name or "")
    options.setdefault("customer_address", quotation.customer_address or "")
    quotation_no = quotation.quotation_no

    sale = sales.checkout(cart, **options)
    logger.info("Converted quotation %s into sale %s", quotation_no, sale.invoice_no)

    if discard_quotation:
        delete_quotation(quotation_id)
    return sale
