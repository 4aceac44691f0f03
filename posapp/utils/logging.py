from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, g, has_request_context


LOG_FILENAME = "mirage_pos.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [req=%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        request_id = getattr(g, "request_id", None) if has_request_context() else None
        record.request_id = request_id or "-"
        return True


def _install(root: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)


def configure_logging(app: Flask) -> Path:
    """Send ``posapp`` logs to stdout and ``LOG_DIR/mirage_pos.log``.

    Safe to call once per app; handlers already on the root logger are reused.
    """

    level = logging.getLevelName(str(app.config.get("LOG_LEVEL") or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    log_dir = Path(app.config.get("LOG_DIR") or Path(app.root_path).parent / "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    root = logging.getLogger()
    root.setLevel(level)
    handlers = root.handlers

    if not any(type(handler) is logging.StreamHandler for handler in handlers):
        _install(root, logging.StreamHandler(sys.stdout), level)
    if not any(getattr(handler, "baseFilename", None) == str(log_path) for handler in handlers):
        _install(root, RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5), level)

    for handler in app.logger.handlers:
        if not any(isinstance(existing, RequestIdFilter) for existing in handler.filters):
            handler.addFilter(RequestIdFilter())

    app.logger.setLevel(level)
    logging.getLogger("posapp").setLevel(level)
    # Scheduler chatter on every tick is noise at INFO.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return log_path
