from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from posapp.exceptions import ValidationError
from posapp.security import require_login
from posapp.services import reports as report_service

bp = Blueprint("reports", __name__, url_prefix="/api/reports")

bp.before_request(require_login)


@bp.get("/dashboard")
def dashboard():
    raw_day = request.args.get("date")
    try:
        day = date.fromisoformat(raw_day) if raw_day else None
    except ValueError:
        raise ValidationError(f"Invalid date '{raw_day}'.")
    summary = report_service.dashboard_summary(
        day, low_stock_threshold=current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    )
    summary["currency"] = current_app.config.get("CURRENCY_LABEL", "LKR")
    return jsonify(summary)


@bp.get("/profit-loss")
def profit_loss():
    return jsonify(report_service.profit_and_loss())


@bp.get("/item-movement")
def item_movement():
    limit = request.args.get("limit", default=5, type=int)
    return jsonify(report_service.item_movement(max(limit, 1)))
