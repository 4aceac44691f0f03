from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from posapp.exceptions import PosError, StorageError

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(PosError)
def handle_pos_error(error: PosError):
    if isinstance(error, StorageError):
        current_app.logger.error("Storage failure on %s: %s", request.path, error.message)
    return jsonify(error.to_dict()), error.status_code


@bp.app_errorhandler(HTTPException)
def handle_http_error(error: HTTPException):
    return jsonify({"error": error.description or error.name, "kind": "http"}), error.code or 500


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    current_app.logger.exception("Unhandled exception on %s", request.path, exc_info=error)
    return jsonify({"error": "Internal Server Error", "kind": "error"}), 500
