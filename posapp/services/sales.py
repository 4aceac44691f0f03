"""Sale ledger: every sale moves stock in the same transaction that records it."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, or_

from posapp.exceptions import NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import Sale, SaleEditJournal
from posapp.services import sync_bus
from posapp.services.cart import Cart
from posapp.services.pricing import compute_totals
from posapp.services.sequence import (
    INVOICE,
    advance_counter,
    custom_invoice_number,
    next_number,
)
from posapp.services.stock_ledger import adjust_stock, restore_stock
from posapp.storage import atomic


logger = logging.getLogger("posapp.sales")

SALE_FIELDS = (
    "id",
    "invoice_no",
    "date",
    "customer_type",
    "customer_name",
    "customer_address",
    "items",
    "total_amount",
    "profit",
    "delivery_charge",
    "discount_type",
    "discount_value",
    "discount_amount",
)
MONEY_FIELDS = (
    "total_amount",
    "profit",
    "delivery_charge",
    "discount_value",
    "discount_amount",
)


def resolve_sale_date(value=None) -> datetime:
    """Use the current time of day on a back-dated sale, like the till does."""

    now = datetime.now()
    if value in (None, ""):
        return now
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, now.time().replace(microsecond=0))
    text = str(value).strip()
    try:
        if len(text) == 10:
            return datetime.combine(date.fromisoformat(text), now.time().replace(microsecond=0))
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid sale date '{value}'.")


def build_sale_data(
    cart: Cart,
    *,
    delivery_charge=0,
    discount_type: str = "fixed",
    discount_value=0,
    customer_name: str = "",
    customer_address: str = "",
    sale_date=None,
    invoice_no: str | None = None,
    custom_invoice_no: str | int | None = None,
) -> dict:
    """Turn the cart into a sale payload, recomputing totals from scratch."""

    if cart.is_empty():
        raise ValidationError("Cart is empty.")

    totals = compute_totals(
        cart.lines,
        cart.price_type,
        delivery_charge=delivery_charge,
        discount_type=discount_type,
        discount_value=discount_value,
    )
    when = resolve_sale_date(sale_date)

    if invoice_no:
        number = invoice_no
    elif custom_invoice_no not in (None, ""):
        number = custom_invoice_number(custom_invoice_no, when.year)
    else:
        number = next_number(INVOICE)

    return {
        "invoice_no": number,
        "date": when,
        "customer_type": cart.price_type,
        "customer_name": (customer_name or "").strip(),
        "customer_address": (customer_address or "").strip(),
        "items": totals.items,
        "total_amount": totals.total,
        "profit": totals.profit,
        "delivery_charge": totals.delivery_charge,
        "discount_type": totals.discount_type,
        "discount_value": totals.discount_value,
        "discount_amount": totals.discount_amount,
    }


def _validated_items(items) -> list[dict]:
    if not items:
        raise ValidationError("A sale needs at least one item.")
    for item in items:
        try:
            qty = int(item["qty"])
            int(item["product_id"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Sale items need a product_id and a whole quantity.")
        if qty <= 0:
            raise ValidationError("Sale quantities must be greater than zero.")
    return list(items)


def _persist_sale(sale_data: dict) -> Sale:
    """Insert the record, consume stock and advance the counter. No commit."""

    items = _validated_items(sale_data.get("items"))
    if not sale_data.get("invoice_no"):
        raise ValidationError("A sale needs an invoice number.")

    sale = Sale(**{key: sale_data[key] for key in SALE_FIELDS if key in sale_data})
    sale.items = items
    db.session.add(sale)
    for item in items:
        adjust_stock(int(item["product_id"]), int(item["qty"]))
    advance_counter(INVOICE, sale.invoice_no)
    db.session.flush()
    return sale


def _remove_sale(sale: Sale) -> None:
    for item in sale.items or []:
        restore_stock(int(item["product_id"]), int(item["qty"]), missing_ok=True)
    db.session.delete(sale)


def create_sale(sale_data: dict) -> Sale:
    with atomic("sale creation"):
        sale = _persist_sale(sale_data)
        invoice_no = sale.invoice_no

    logger.info("Recorded sale %s with %d line(s)", invoice_no, len(sale_data["items"]))
    sync_bus.publish_refresh("sales")
    return sale


def checkout(cart: Cart, **options) -> Sale:
    return create_sale(build_sale_data(cart, **options))


def delete_sale(sale_id: int) -> dict:
    """Delete a sale and put its quantities back on the shelf."""

    with atomic("sale deletion"):
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} does not exist.")
        snapshot = sale_to_payload(sale)
        _remove_sale(sale)

    logger.info("Deleted sale %s and restored stock", snapshot["invoice_no"])
    sync_bus.publish_refresh("sales")
    return snapshot


def sale_to_payload(sale: Sale) -> dict:
    return {key: getattr(sale, key) for key in SALE_FIELDS}


def payload_to_json(payload: dict) -> dict:
    encoded = dict(payload)
    for key in MONEY_FIELDS:
        if key in encoded and encoded[key] is not None:
            encoded[key] = str(encoded[key])
    if isinstance(encoded.get("date"), datetime):
        encoded["date"] = encoded["date"].isoformat()
    return encoded


def payload_from_json(encoded: dict) -> dict:
    payload = dict(encoded)
    for key in MONEY_FIELDS:
        if payload.get(key) is not None:
            payload[key] = Decimal(str(payload[key]))
    if isinstance(payload.get("date"), str):
        payload["date"] = datetime.fromisoformat(payload["date"])
    return payload


def edit_sale(sale_id: int, cart: Cart, **options) -> Sale:
    """Replace a sale with a new one built from ``cart``.

    Runs as two transactions. The first restores stock, deletes the old sale
    and writes a pending :class:`SaleEditJournal` row holding both the old
    sale and the replacement. The second inserts the replacement and clears
    the journal row. If the second half fails the journal row remains and
    :func:`resume_sale_edit` or :func:`abandon_sale_edit` finishes the job.

    Terms left out of ``options`` (date, customer, delivery, discount) are
    carried over from the sale being replaced.
    """

    options.pop("invoice_no", None)
    options.pop("custom_invoice_no", None)

    with atomic("sale edit"):
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} does not exist.")
        options.setdefault("sale_date", sale.date)
        options.setdefault("customer_name", sale.customer_name or "")
        options.setdefault("customer_address", sale.customer_address or "")
        options.setdefault("delivery_charge", sale.delivery_charge)
        options.setdefault("discount_type", sale.discount_type or "fixed")
        options.setdefault("discount_value", sale.discount_value)
        replacement = build_sale_data(cart, invoice_no=sale.invoice_no, **options)
        journal = SaleEditJournal(
            original_sale=payload_to_json(sale_to_payload(sale)),
            replacement=payload_to_json(replacement),
            status=SaleEditJournal.STATUS_PENDING,
        )
        _remove_sale(sale)
        db.session.add(journal)
        db.session.flush()
        journal_id = journal.id

    logger.info("Sale %s removed for editing (journal %s)", replacement["invoice_no"], journal_id)
    sync_bus.publish_refresh("sales")
    return resume_sale_edit(journal_id)


def _pending_journal(journal_id: int) -> SaleEditJournal:
    journal = db.session.get(SaleEditJournal, journal_id)
    if journal is None:
        raise NotFoundError(f"Sale edit {journal_id} does not exist.")
    return journal


def resume_sale_edit(journal_id: int) -> Sale:
    """Insert the replacement sale recorded by an interrupted edit."""

    with atomic("sale edit completion"):
        journal = _pending_journal(journal_id)
        sale = _persist_sale(payload_from_json(journal.replacement))
        db.session.delete(journal)
        invoice_no = sale.invoice_no

    logger.info("Completed edit of sale %s", invoice_no)
    sync_bus.publish_refresh("sales")
    return sale


def abandon_sale_edit(journal_id: int) -> Sale:
    """Compensate an interrupted edit by re-inserting the original sale."""

    with atomic("sale edit rollback"):
        journal = _pending_journal(journal_id)
        original = payload_from_json(journal.original_sale)
        if original.get("id") is not None and db.session.get(Sale, original["id"]) is not None:
            original.pop("id")
        sale = _persist_sale(original)
        db.session.delete(journal)
        invoice_no = sale.invoice_no

    logger.warning("Abandoned edit of sale %s; original restored", invoice_no)
    sync_bus.publish_refresh("sales")
    return sale


def pending_sale_edits() -> list[SaleEditJournal]:
    return (
        SaleEditJournal.query.filter_by(status=SaleEditJournal.STATUS_PENDING)
        .order_by(SaleEditJournal.id.asc())
        .all()
    )


def cart_for_sale(sale_id: int) -> Cart:
    """Load a sale back into a cart at current product prices for editing."""

    sale = get_sale(sale_id)
    return Cart.from_items(sale.items, sale.customer_type)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} does not exist.")
    return sale


def get_sale_by_invoice(invoice_no: str) -> Sale:
    sale = Sale.query.filter_by(invoice_no=invoice_no).order_by(Sale.id.desc()).first()
    if sale is None:
        raise NotFoundError(f"Invoice {invoice_no} does not exist.")
    return sale


def list_sales(search: str | None = None) -> list[Sale]:
    query = Sale.query
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Sale.invoice_no).like(pattern),
                func.lower(Sale.customer_name).like(pattern),
            )
        )
    return query.order_by(Sale.id.desc()).all()


def sales_on_date(day: date) -> list[Sale]:
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    return (
        Sale.query.filter(Sale.date >= start, Sale.date < end)
        .order_by(Sale.id.desc())
        .all()
    )
