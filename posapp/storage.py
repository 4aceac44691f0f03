"""Atomic write helper around the Flask-SQLAlchemy session."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posapp.exceptions import StorageError
from posapp.extensions import db


logger = logging.getLogger("posapp.storage")


@contextmanager
def atomic(operation: str) -> Iterator[Session]:
    """Run a block of reads and writes that commits or rolls back as one unit.

    Any exception raised inside the block rolls the session back before it
    propagates. Database failures, including a failed commit, are re-raised
    as :class:`StorageError` so callers see a single failure type for the
    whole operation.
    """

    session = db.session
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Storage failure during %s", operation)
        raise StorageError(f"Unable to complete {operation}: {exc}", operation=operation) from exc
    except Exception:
        session.rollback()
        raise
