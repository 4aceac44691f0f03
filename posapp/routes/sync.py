from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from posapp.exceptions import NotFoundError
from posapp.security import require_login
from posapp.services import sync_bus

bp = Blueprint("sync", __name__, url_prefix="/api")

bp.before_request(require_login)


@bp.get("/sync")
def sync_status():
    return jsonify(
        {
            "message": sync_bus.REFRESH_MESSAGE,
            "generation": sync_bus.current_generation(),
            "channel": current_app.config.get("SYNC_CHANNEL"),
        }
    )


@bp.get("/sync/events")
def sync_events():
    limit = request.args.get("limit", default=50, type=int)
    events = [
        {**event, "timestamp": event["timestamp"].isoformat()}
        for event in sync_bus.get_recent_events(limit)
    ]
    return jsonify(events)


@bp.get("/state/<name>")
def cached_collection(name: str):
    cache = current_app.extensions["state_cache"]
    try:
        rows = cache.get(name)
    except KeyError:
        raise NotFoundError(f"Unknown collection '{name}'.")
    return jsonify(rows)
