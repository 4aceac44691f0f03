from __future__ import annotations

import json

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user

from posapp.exceptions import ValidationError
from posapp.routes import json_body, truthy
from posapp.security import admin_required
from posapp.services import accounts, backup

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.get("/backup/export")
@admin_required
def export_backup():
    payload = json.dumps(backup.export_snapshot(), indent=2)
    return Response(
        payload,
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="{backup.backup_filename()}"'},
    )


@bp.post("/backup/import")
@admin_required
def import_backup():
    upload = request.files.get("file")
    if upload is not None:
        document = upload.read()
    else:
        document = request.get_json(silent=True)
        if document is None:
            raise ValidationError("Upload a backup file or post the backup JSON.")

    counts = backup.import_snapshot(document)
    current_app.logger.warning("Backup restored by %s", current_user.username)
    return jsonify({"status": "restored", "counts": counts})


@bp.post("/backup/reset")
@admin_required
def reset_database():
    if not truthy(json_body().get("confirm")):
        raise ValidationError("Reset requires confirm=true.")
    backup.reset_database(current_app.config.get("DEFAULT_VENDORS", ()))
    current_app.logger.warning("Store reset by %s", current_user.username)
    return jsonify({"status": "reset"})


@bp.get("/backups")
@admin_required
def list_backups():
    return jsonify(
        {
            "enabled": bool(current_app.config.get("BACKUPS_ENABLED")),
            "files": backup.list_backup_files(backup.get_backup_dir(current_app)),
        }
    )


@bp.post("/backups/run")
@admin_required
def run_backup():
    path = backup.write_backup_file(backup.get_backup_dir(current_app))
    return jsonify({"status": "written", "filename": path.name}), 201


@bp.get("/users")
@admin_required
def list_users():
    return jsonify([user.to_dict() for user in accounts.list_users()])


@bp.post("/users")
@admin_required
def create_user():
    payload = json_body()
    user = accounts.register_user(
        payload.get("username"),
        payload.get("password"),
        payload.get("role") or "staff",
    )
    return jsonify(user.to_dict()), 201


@bp.delete("/users/<int:user_id>")
@admin_required
def delete_user(user_id: int):
    accounts.delete_user(user_id)
    return jsonify({"status": "deleted", "id": user_id})
