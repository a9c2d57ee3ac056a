import logging
import os

import pytest

from app import logging_config


@pytest.fixture
def root_handlers():
    root_logger = logging.getLogger()
    before = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        if handler not in before:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)


def _named(root_logger, name):
    return [handler for handler in root_logger.handlers if handler.get_name() == name]


def test_worker_gets_its_own_log_file(root_handlers):
    logging_config.setup_logging("worker")
    logging_config.setup_logging("worker")

    assert len(_named(root_handlers, "blog-file-worker")) == 1
    assert len(_named(root_handlers, "blog-console")) == 1
    assert os.path.exists(logging_config.log_file_for("worker"))


def test_level_comes_from_settings(root_handlers, monkeypatch):
    monkeypatch.setattr(logging_config.settings, "LOG_LEVEL", "debug")

    logging_config.setup_logging("worker")

    assert root_handlers.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_level_falls_back_to_info(root_handlers, monkeypatch):
    monkeypatch.setattr(logging_config.settings, "LOG_LEVEL", "chatty")

    logging_config.setup_logging("worker")

    assert root_handlers.level == logging.INFO
