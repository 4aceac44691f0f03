from __future__ import annotations

from flask import Blueprint, jsonify, request

from posapp.routes import CHECKOUT_OPTIONS, cart_dict, json_body, pick, truthy
from posapp.security import require_login
from posapp.services import quotations as quotation_service
from posapp.services.cart import Cart
from posapp.services.sequence import get_next_quotation_no

bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")

bp.before_request(require_login)

QUOTATION_OPTIONS = ("delivery_charge", "discount_type", "discount_value", "customer_name", "customer_address")


@bp.get("")
def list_quotations():
    quotations = quotation_service.list_quotations(request.args.get("search"))
    return jsonify([quotation.to_dict() for quotation in quotations])


@bp.get("/next-number")
def next_quotation_number():
    return jsonify({"quotation_no": get_next_quotation_no()})


@bp.post("")
def create_quotation():
    payload = json_body()
    cart = Cart.from_request(payload, enforce_stock=False)
    quotation = quotation_service.save_quotation(cart, **pick(payload, QUOTATION_OPTIONS))
    return jsonify(quotation.to_dict()), 201


@bp.get("/<int:quotation_id>")
def get_quotation(quotation_id: int):
    return jsonify(quotation_service.get_quotation(quotation_id).to_dict())


@bp.put("/<int:quotation_id>")
def update_quotation(quotation_id: int):
    payload = json_body()
    cart = Cart.from_request(payload, enforce_stock=False)
    quotation = quotation_service.save_quotation(
        cart, quotation_id=quotation_id, **pick(payload, QUOTATION_OPTIONS)
    )
    return jsonify(quotation.to_dict())


@bp.delete("/<int:quotation_id>")
def delete_quotation(quotation_id: int):
    quotation_service.delete_quotation(quotation_id)
    return jsonify({"status": "deleted", "id": quotation_id})


@bp.get("/<int:quotation_id>/cart")
def quotation_cart(quotation_id: int):
    cart, _ = quotation_service.load_quotation_cart(quotation_id)
    return jsonify(cart_dict(cart))


@bp.post("/<int:quotation_id>/convert")
def convert_quotation(quotation_id: int):
    payload = json_body()
    sale = quotation_service.convert_to_sale(
        quotation_id,
        discard_quotation=truthy(payload.get("discard_quotation")),
        **pick(payload, CHECKOUT_OPTIONS + ("custom_invoice_no",)),
    )
    return jsonify(sale.to_dict()), 201
