from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from posapp.routes import json_body
from posapp.services.accounts import authenticate

bp = Blueprint("auth", __name__, url_prefix="/auth")


@bp.post("/login")
def login():
    payload = json_body() or request.form.to_dict()
    user = authenticate(payload.get("username"), payload.get("password"))
    if user is None:
        return jsonify({"error": "Invalid credentials", "kind": "unauthorized"}), 401
    login_user(user)
    return jsonify(user.to_dict())


@bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"status": "logged_out"})


@bp.get("/me")
@login_required
def me():
    return jsonify(current_user.to_dict())
