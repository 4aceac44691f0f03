from __future__ import annotations

from flask import request

from posapp.services.pricing import compute_totals, money_str


CHECKOUT_OPTIONS = (
    "delivery_charge",
    "discount_type",
    "discount_value",
    "customer_name",
    "customer_address",
    "sale_date",
)


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def pick(payload: dict, keys) -> dict:
    """Copy the keys present in ``payload``; absent keys keep service defaults."""

    return {key: payload[key] for key in keys if key in payload}


def truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def cart_dict(cart) -> dict:
    totals = compute_totals(cart.lines, cart.price_type)
    return {
        "price_type": cart.price_type,
        "items": totals.items,
        "subtotal": money_str(totals.subtotal),
    }
