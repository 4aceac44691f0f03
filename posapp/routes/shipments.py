from __future__ import annotations

from flask import Blueprint, jsonify, request

from posapp.exceptions import ValidationError
from posapp.routes import json_body
from posapp.security import require_login
from posapp.services import shipments as shipment_service
from posapp.services.sequence import SHIPMENT, next_number

bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")

bp.before_request(require_login)


def _lines(payload: dict) -> list[shipment_service.ShipmentLine]:
    rows = payload.get("items") or []
    if not isinstance(rows, list):
        raise ValidationError("Shipment items must be a list.")
    return [shipment_service.ShipmentLine.from_dict(row) for row in rows if isinstance(row, dict)]


@bp.get("")
def list_shipments():
    shipments = shipment_service.list_shipments(request.args.get("search"))
    return jsonify([shipment.to_dict() for shipment in shipments])


@bp.get("/next-number")
def next_shipment_number():
    return jsonify({"shipment_id": next_number(SHIPMENT)})


@bp.post("/preview")
def preview_shipment():
    payload = json_body()
    preview = shipment_service.preview_shipment(
        payload.get("shipping_cost"), payload.get("exchange_rate"), _lines(payload)
    )
    return jsonify(preview.to_dict())


@bp.post("")
def commit_shipment():
    payload = json_body()
    shipment = shipment_service.commit_shipment(
        payload.get("vendor"),
        payload.get("shipping_cost"),
        payload.get("exchange_rate"),
        _lines(payload),
    )
    return jsonify(shipment.to_dict()), 201


@bp.get("/<int:shipment_pk>")
def get_shipment(shipment_pk: int):
    return jsonify(shipment_service.get_shipment(shipment_pk).to_dict())


@bp.delete("/<int:shipment_pk>")
def delete_shipment(shipment_pk: int):
    shipment_service.delete_shipment(shipment_pk)
    return jsonify({"status": "deleted", "id": shipment_pk})
