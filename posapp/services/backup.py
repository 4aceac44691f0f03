"""Whole-store JSON snapshots and the automated backup scheduler.

Importing a snapshot is a destructive full replace: every table is cleared
before the arrays in the document are inserted, and tables missing from the
document stay empty. Operators should export first; nothing here keeps the
previous contents.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import DateTime, Numeric, func, select, text
from werkzeug.security import generate_password_hash

from posapp.exceptions import ValidationError
from posapp.extensions import db
from posapp.models import (
    PosSettings,
    Product,
    Quotation,
    Sale,
    SaleEditJournal,
    Shipment,
    User,
    Vendor,
    utcnow,
)
from posapp.services import sync_bus
from posapp.services.accounts import ensure_admin_user
from posapp.services.inventory import seed_default_vendors
from posapp.storage import atomic


SNAPSHOT_VERSION = 1
BACKUP_JOB_ID = "automated-json-backup"
BACKUP_FILE_PREFIX = "mirage_pos_backup_"

TABLES = (
    ("products", Product),
    ("sales", Sale),
    ("quotations", Quotation),
    ("shipments", Shipment),
    ("vendors", Vendor),
    ("settings", PosSettings),
    ("users", User),
    ("sale_edits", SaleEditJournal),
)

logger = logging.getLogger("posapp.backup")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _encode(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _parse_datetime(value: str) -> datetime:
    text_value = value.strip()
    if text_value.endswith("Z"):
        text_value = text_value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text_value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _normalize_items(items):
    # Older browser backups used camelCase keys inside line items.
    if not isinstance(items, list):
        return items
    return [
        {_snake(key): value for key, value in item.items()} if isinstance(item, dict) else item
        for item in items
    ]


def serialize_row(row) -> dict:
    return {
        column.key: _encode(getattr(row, column.key))
        for column in row.__table__.columns
    }


def deserialize_row(model, raw: dict) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"Invalid {model.__tablename__} record in backup.")

    incoming = {_snake(key): value for key, value in raw.items()}
    if model is User and "password" in incoming and not incoming.get("password_hash"):
        incoming["password_hash"] = generate_password_hash(str(incoming.pop("password")))
    if model in (Sale, Quotation) and "items" in incoming:
        incoming["items"] = _normalize_items(incoming["items"])
    if model is Shipment and "total_cost" in incoming and "shipping_cost" not in incoming:
        incoming["shipping_cost"] = incoming["total_cost"]

    values = {}
    for column in model.__table__.columns:
        if column.key not in incoming:
            continue
        value = incoming[column.key]
        try:
            if value is not None and isinstance(column.type, DateTime) and isinstance(value, str):
                value = _parse_datetime(value)
            elif value is not None and isinstance(column.type, Numeric):
                value = Decimal(str(value))
        except (ValueError, InvalidOperation):
            raise ValidationError(
                f"Invalid value for {model.__tablename__}.{column.key} in backup."
            )
        values[column.key] = value
    return values


def export_snapshot() -> dict:
    snapshot: dict = {
        "version": SNAPSHOT_VERSION,
        "exported_at": utcnow().isoformat(),
    }
    for key, model in TABLES:
        rows = db.session.query(model).order_by(*model.__table__.primary_key.columns).all()
        snapshot[key] = [serialize_row(row) for row in rows]
    return snapshot


def _resync_sequences() -> None:
    """Move PostgreSQL id sequences past the ids restored from a snapshot."""

    if db.engine.dialect.name != "postgresql":
        return

    for _, model in TABLES:
        table_name = model.__tablename__
        id_column = model.__table__.columns.get("id")
        if id_column is None or not isinstance(id_column.type, db.Integer):
            continue
        sequence_name = db.session.execute(
            text("SELECT pg_get_serial_sequence(:table_name, 'id')"),
            {"table_name": f'"{table_name}"'},
        ).scalar()
        if not sequence_name:
            continue
        max_identifier = db.session.execute(select(func.coalesce(func.max(id_column), 0))).scalar()
        db.session.execute(
            text("SELECT setval(:sequence_name, :value, :is_called)"),
            {
                "sequence_name": sequence_name,
                "value": max_identifier if max_identifier > 0 else 1,
                "is_called": bool(max_identifier),
            },
        )


def import_snapshot(doc) -> dict[str, int]:
    """Replace the whole store with ``doc``. Record ids are kept as exported."""

    if isinstance(doc, (str, bytes)):
        try:
            doc = json.loads(doc)
        except ValueError:
            raise ValidationError("Backup file is not valid JSON.")
    if not isinstance(doc, dict):
        raise ValidationError("Backup document must be a JSON object.")
    for key, _ in TABLES:
        if key in doc and doc[key] is not None and not isinstance(doc[key], list):
            raise ValidationError(f"Backup field '{key}' must be a list.")

    counts: dict[str, int] = {}
    with atomic("snapshot import"):
        for _, model in reversed(TABLES):
            db.session.query(model).delete(synchronize_session=False)
        # Drop stale identities so restored rows can reuse their ids.
        db.session.expunge_all()

        for key, model in TABLES:
            records = [model(**deserialize_row(model, raw)) for raw in doc.get(key) or []]
            db.session.add_all(records)
            counts[key] = len(records)
        db.session.flush()
        _resync_sequences()

    logger.warning("Store replaced from snapshot: %s", counts)
    sync_bus.publish_refresh("backup")
    return counts


def reset_database(defaults) -> None:
    """Delete every record, then re-seed the counters, vendors and admin."""

    with atomic("store reset"):
        for _, model in reversed(TABLES):
            db.session.query(model).delete(synchronize_session=False)
        db.session.expunge_all()
        PosSettings.get_or_create()

    seed_default_vendors(defaults)
    ensure_admin_user()
    logger.warning("Store reset to defaults")
    sync_bus.publish_refresh("backup")


def backup_filename(day: date | None = None) -> str:
    day = day or date.today()
    return f"{BACKUP_FILE_PREFIX}{day.isoformat()}.json"


def write_backup_file(directory: Path | str, day: date | None = None) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(day)
    payload = json.dumps(export_snapshot(), indent=2)

    # Write to a temp file first so an interrupted write never truncates an
    # older backup with the same date.
    with tempfile.NamedTemporaryFile(
        "w", dir=directory, prefix=".backup_", suffix=".json", delete=False, encoding="utf-8"
    ) as handle:
        handle.write(payload)
        temp_name = handle.name
    os.replace(temp_name, path)

    logger.info("Wrote backup %s", path)
    return path


def read_backup_file(path: Path | str) -> dict[str, int]:
    with open(path, "r", encoding="utf-8") as handle:
        contents = handle.read()
    return import_snapshot(contents)


def list_backup_files(directory: Path | str) -> list[dict[str, object]]:
    directory = Path(directory)
    if not directory.exists():
        return []
    files = []
    for entry in sorted(directory.glob(f"{BACKUP_FILE_PREFIX}*.json"), reverse=True):
        stat = entry.stat()
        files.append(
            {
                "filename": entry.name,
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            }
        )
    return files


def get_backup_dir(app) -> Path:
    candidates = []
    env_dir = os.environ.get("BACKUP_DIR")
    if env_dir:
        candidates.append(Path(env_dir))
    if app.config.get("BACKUP_DIR"):
        candidates.append(Path(app.config["BACKUP_DIR"]))
    candidates.append(Path(app.instance_path) / "backups")
    candidates.append(Path.cwd() / "backups")

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=candidate, prefix=".write_test_", delete=True):
                pass
            return candidate
        except OSError as exc:
            last_error = exc
            logger.warning("Backup directory '%s' is not writable; trying the next option.", candidate)

    raise RuntimeError(f"Unable to create a writable backup directory. Last error: {last_error}")


def run_backup_job(app) -> None:
    with app.app_context():
        try:
            path = write_backup_file(get_backup_dir(app))
        except Exception:
            logger.exception("Automated backup failed")
            return
        logger.info("Automated backup completed: %s", path.name)


def initialize_backup_scheduler(app) -> BackgroundScheduler | None:
    interval = int(app.config.get("BACKUP_INTERVAL_HOURS") or 0)
    if app.config.get("TESTING") or interval <= 0:
        app.config["BACKUPS_ENABLED"] = False
        return None

    try:
        get_backup_dir(app)
    except RuntimeError as exc:
        logger.warning("Automated backups disabled: %s", exc)
        app.config["BACKUPS_ENABLED"] = False
        return None

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        run_backup_job,
        trigger=IntervalTrigger(hours=interval),
        args=[app],
        id=BACKUP_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    app.extensions["backup_scheduler"] = scheduler
    app.config["BACKUPS_ENABLED"] = True
    logger.info("Automated backups every %d hour(s)", interval)
    return scheduler
