import logging
import uuid

from flask import Flask, current_app, g, jsonify, request
from sqlalchemy import inspect, text
from sqlalchemy.exc import NoSuchTableError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from config import Config

from . import models  # ensure models are registered with SQLAlchemy
from .exceptions import StorageError
from .extensions import db, login_manager
from .routes import admin, auth, errors, inventory, quotations, reports, sales, shipments, sync
from .services.accounts import ensure_admin_user
from .services.backup import initialize_backup_scheduler
from .services.inventory import seed_default_vendors
from .services.state_cache import AppStateCache
from .utils.logging import configure_logging


logger = logging.getLogger("posapp")


# Columns added after the first release. Older databases get them on startup;
# nothing is ever dropped or retyped here.
_REQUIRED_COLUMNS = {
    "product": {
        "category": "VARCHAR(100)",
        "vendor": "VARCHAR(200)",
        "wholesale_price": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
    },
    "sale": {
        "customer_address": "TEXT",
        "profit": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
        "delivery_charge": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
        "discount_type": "VARCHAR(16) DEFAULT 'fixed' NOT NULL",
        "discount_value": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
        "discount_amount": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
    },
    "quotation": {
        "customer_address": "TEXT",
        "delivery_charge": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
        "discount_type": "VARCHAR(16) DEFAULT 'fixed' NOT NULL",
        "discount_value": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
        "discount_amount": "NUMERIC(12, 2) DEFAULT 0 NOT NULL",
    },
    "shipment": {
        "exchange_rate": "NUMERIC(12, 4) DEFAULT 1 NOT NULL",
        "product_count": "INTEGER DEFAULT 0 NOT NULL",
    },
    "user": {
        "role": "VARCHAR(16) DEFAULT 'staff' NOT NULL",
    },
}


def _ensure_pos_schema(engine):
    """Backfill legacy tables with the current columns."""

    inspector = inspect(engine)
    preparer = engine.dialect.identifier_preparer

    columns_to_add = []
    for table_name, required in _REQUIRED_COLUMNS.items():
        try:
            existing = {col["name"] for col in inspector.get_columns(table_name)}
        except (NoSuchTableError, OperationalError):
            continue
        for column_name, column_type in required.items():
            if column_name not in existing:
                columns_to_add.append((table_name, column_name, column_type))

    if not columns_to_add:
        return

    with engine.begin() as conn:
        for table_name, column_name, column_type in columns_to_add:
            conn.execute(
                text(
                    f"ALTER TABLE {preparer.quote(table_name)} "
                    f"ADD COLUMN {preparer.quote(column_name)} {column_type}"
                )
            )
            logger.info("Added missing column %s.%s", table_name, column_name)


def _ping_database() -> None:
    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_app(config_override=None):
    app = Flask(__name__)

    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    if not app.config.get("TESTING"):
        configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        if not user_id:
            return None
        try:
            return db.session.get(models.User, int(user_id))
        except (TypeError, ValueError):
            return None
        except OperationalError:
            current_app.logger.warning(
                "Skipped user lookup because the database is unavailable."
            )
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Login required.", "kind": "unauthorized"}), 401

    database_available = True
    with app.app_context():
        try:
            _ping_database()
            db.create_all()
            _ensure_pos_schema(db.engine)
            models.PosSettings.get_or_create()
            db.session.commit()
            seed_default_vendors(app.config.get("DEFAULT_VENDORS", ()))
            ensure_admin_user()
        except (SQLAlchemyError, StorageError):
            database_available = False
            app.logger.exception("Database initialization error")
            db.session.rollback()
            db.session.remove()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.extensions["state_cache"] = AppStateCache().attach()

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    app.register_blueprint(errors.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(inventory.bp)
    app.register_blueprint(sales.bp)
    app.register_blueprint(quotations.bp)
    app.register_blueprint(shipments.bp)
    app.register_blueprint(admin.bp)
    app.register_blueprint(reports.bp)
    app.register_blueprint(sync.bp)

    initialize_backup_scheduler(app)

    return app
