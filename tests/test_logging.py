import logging
import os
import sys

import pytest
from flask import g

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from posapp import create_app
from posapp.services import sync_bus
from posapp.utils.logging import LOG_FILENAME, configure_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    posapp_level = logging.getLogger("posapp").level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.getLogger("posapp").setLevel(posapp_level)


@pytest.fixture
def app(tmp_path):
    sync_bus.reset()
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "LOG_DIR": str(tmp_path / "logs"),
            "LOG_LEVEL": "debug",
        }
    )
    yield app
    sync_bus.reset()


def _file_handlers(root, log_path):
    return [h for h in root.handlers if getattr(h, "baseFilename", None) == str(log_path)]


def test_log_file_carries_request_id(app, root_logger, tmp_path):
    log_path = configure_logging(app)

    assert log_path == tmp_path / "logs" / LOG_FILENAME
    assert root_logger.level == logging.DEBUG

    with app.test_request_context("/"):
        g.request_id = "till42"
        logging.getLogger("posapp.sales").debug("Recorded sale %s", "INV-0001")
    logging.getLogger("posapp.sales").info("Outside a request")
    for handler in _file_handlers(root_logger, log_path):
        handler.flush()

    contents = log_path.read_text(encoding="utf-8")
    assert "[req=till42] posapp.sales: Recorded sale INV-0001" in contents
    assert "[req=-] posapp.sales: Outside a request" in contents


def test_configure_logging_twice_keeps_one_file_handler(app, root_logger):
    log_path = configure_logging(app)
    configure_logging(app)

    assert len(_file_handlers(root_logger, log_path)) == 1


def test_unknown_level_falls_back_to_info(app, root_logger):
    app.config["LOG_LEVEL"] = "chatty"

    configure_logging(app)

    assert logging.getLogger("posapp").level == logging.INFO
