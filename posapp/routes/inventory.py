from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from posapp.routes import json_body, truthy
from posapp.security import require_login
from posapp.services import inventory as inventory_service

bp = Blueprint("inventory", __name__, url_prefix="/api")

bp.before_request(require_login)


@bp.get("/products")
def list_products():
    products = inventory_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return jsonify([product.to_dict() for product in products])


@bp.get("/products/low-stock")
def low_stock():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    products = inventory_service.low_stock_products(threshold)
    return jsonify([product.to_dict() for product in products])


@bp.post("/products")
def create_product():
    payload = json_body()
    product = inventory_service.add_product(
        payload, acknowledge_warnings=truthy(payload.get("acknowledge_warnings"))
    )
    return jsonify(product.to_dict()), 201


@bp.get("/products/<int:product_id>")
def get_product(product_id: int):
    return jsonify(inventory_service.get_product(product_id).to_dict())


@bp.put("/products/<int:product_id>")
def update_product(product_id: int):
    payload = json_body()
    product = inventory_service.update_product(
        product_id, payload, acknowledge_warnings=truthy(payload.get("acknowledge_warnings"))
    )
    return jsonify(product.to_dict())


@bp.delete("/products/<int:product_id>")
def delete_product(product_id: int):
    inventory_service.delete_product(product_id)
    return jsonify({"status": "deleted", "id": product_id})


@bp.get("/vendors")
def list_vendors():
    return jsonify([vendor.to_dict() for vendor in inventory_service.list_vendors()])


@bp.post("/vendors")
def create_vendor():
    payload = json_body()
    vendor = inventory_service.add_vendor(payload.get("name"), payload.get("contact"))
    return jsonify(vendor.to_dict()), 201
