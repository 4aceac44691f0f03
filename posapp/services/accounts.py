"""User accounts for the admin/staff split."""

from __future__ import annotations

import logging

from flask import current_app

from posapp.exceptions import NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import User
from posapp.services import sync_bus
from posapp.storage import atomic


logger = logging.getLogger("posapp.accounts")

ROLES = (User.ROLE_ADMIN, User.ROLE_STAFF)


def _bootstrap_credentials() -> tuple[str, str]:
    try:
        config = current_app.config
    except RuntimeError:  # pragma: no cover - outside an application context
        config = {}
    return (
        config.get("ADMIN_USER") or "Administrator",
        config.get("ADMIN_PASSWORD") or "Campion#123",
    )


def ensure_admin_user() -> User | None:
    """Create the bootstrap administrator when no accounts exist."""

    if User.query.first() is not None:
        return None

    username, password = _bootstrap_credentials()
    with atomic("bootstrap admin creation"):
        user = User(username=username, role=User.ROLE_ADMIN)
        user.set_password(password)
        db.session.add(user)

    logger.info("Created bootstrap admin account '%s'", username)
    return user


def authenticate(username: str | None, password: str | None) -> User | None:
    username = (username or "").strip()
    password = (password or "").strip()
    if not username or not password:
        raise ValidationError("Please enter username and password.")

    ensure_admin_user()
    user = User.query.filter_by(username=username).first()
    if user is None or not user.check_password(password):
        logger.info("Failed login for '%s'", username)
        return None
    return user


def list_users() -> list[User]:
    return User.query.order_by(User.id.asc()).all()


def register_user(username: str, password: str, role: str = User.ROLE_STAFF) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required.")
    if role not in ROLES:
        raise ValidationError(f"Unknown role '{role}'.")
    if User.query.filter_by(username=username).first() is not None:
        raise ValidationError("User already exists!")

    with atomic("user creation"):
        user = User(username=username, role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

    logger.info("Registered %s account '%s'", role, username)
    sync_bus.publish_refresh("users")
    return user


def delete_user(user_id: int) -> None:
    """Delete an account, refusing to remove the last administrator."""

    with atomic("user deletion"):
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} does not exist.")
        if user.is_admin:
            admins = User.query.filter_by(role=User.ROLE_ADMIN).count()
            if admins <= 1:
                raise ValidationError("The last administrator cannot be deleted.")
        username = user.username
        db.session.delete(user)

    logger.info("Deleted account '%s'", username)
    sync_bus.publish_refresh("users")
