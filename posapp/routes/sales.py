from __future__ import annotations

from flask import Blueprint, jsonify, request

from posapp.routes import CHECKOUT_OPTIONS, cart_dict, json_body, pick, truthy
from posapp.security import require_login
from posapp.services import sales as sales_service
from posapp.services.cart import Cart
from posapp.services.pricing import compute_totals, money_str
from posapp.services.sequence import INVOICE, next_number

bp = Blueprint("sales", __name__, url_prefix="/api/sales")

bp.before_request(require_login)


@bp.get("")
def list_sales():
    return jsonify([sale.to_dict() for sale in sales_service.list_sales(request.args.get("search"))])


@bp.get("/next-invoice")
def next_invoice():
    return jsonify({"invoice_no": next_number(INVOICE)})


@bp.post("/preview")
def preview_totals():
    payload = json_body()
    cart = Cart.from_request(payload, enforce_stock=False)
    options = pick(payload, ("delivery_charge", "discount_type", "discount_value"))
    totals = compute_totals(cart.lines, cart.price_type, **options)
    return jsonify(
        {
            "items": totals.items,
            "subtotal": money_str(totals.subtotal),
            "delivery_charge": money_str(totals.delivery_charge),
            "discount_amount": money_str(totals.discount_amount),
            "total": money_str(totals.total),
            "profit": money_str(totals.profit),
            "total_qty": totals.total_qty,
        }
    )


@bp.post("")
def create_sale():
    payload = json_body()
    cart = Cart.from_request(payload, enforce_stock=not truthy(payload.get("allow_oversell")))
    options = pick(payload, CHECKOUT_OPTIONS + ("custom_invoice_no",))
    sale = sales_service.checkout(cart, **options)
    return jsonify(sale.to_dict()), 201


@bp.get("/<int:sale_id>")
def get_sale(sale_id: int):
    return jsonify(sales_service.get_sale(sale_id).to_dict())


@bp.get("/invoice/<invoice_no>")
def get_sale_by_invoice(invoice_no: str):
    return jsonify(sales_service.get_sale_by_invoice(invoice_no).to_dict())


@bp.delete("/<int:sale_id>")
def delete_sale(sale_id: int):
    snapshot = sales_service.delete_sale(sale_id)
    return jsonify({"status": "deleted", "id": sale_id, "invoice_no": snapshot["invoice_no"]})


@bp.get("/<int:sale_id>/cart")
def sale_cart(sale_id: int):
    return jsonify(cart_dict(sales_service.cart_for_sale(sale_id)))


@bp.post("/<int:sale_id>/edit")
def edit_sale(sale_id: int):
    payload = json_body()
    # The old sale's quantities go back on the shelf first, so the soft
    # stock check would reject legitimate edits.
    cart = Cart.from_request(payload, enforce_stock=False)
    sale = sales_service.edit_sale(sale_id, cart, **pick(payload, CHECKOUT_OPTIONS))
    return jsonify(sale.to_dict())


@bp.get("/edits")
def pending_edits():
    return jsonify([journal.to_dict() for journal in sales_service.pending_sale_edits()])


@bp.post("/edits/<int:journal_id>/resume")
def resume_edit(journal_id: int):
    return jsonify(sales_service.resume_sale_edit(journal_id).to_dict())


@bp.post("/edits/<int:journal_id>/abandon")
def abandon_edit(journal_id: int):
    return jsonify(sales_service.abandon_sale_edit(journal_id).to_dict())
