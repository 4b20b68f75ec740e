"""
Test suite for logger configuration and Sentry initialization.

Run tests:
    pytest tests/core/test_logger.py -v
"""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

import taskgate.core.logger as logger_module
from taskgate.core.logger import init_sentry, setup_logger


@pytest.fixture(autouse=True)
def reset_sentry_state():
    logger_module._sentry_initialized = False
    yield
    logger_module._sentry_initialized = False


@pytest.fixture
def logger_name():
    name = f"taskgate-test-{uuid4().hex}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def sentry_modules(mock_sentry):
    return {
        "sentry_sdk": mock_sentry,
        "sentry_sdk.integrations.logging": MagicMock(),
        "sentry_sdk.integrations.asyncio": MagicMock(),
    }


class TestInitSentry:
    def test_initializes_once(self):
        mock_sentry = MagicMock()

        with patch.dict("sys.modules", sentry_modules(mock_sentry)):
            assert init_sentry(dsn="https://key@sentry.test/1", environment="test")
            assert init_sentry(dsn="https://key@sentry.test/1") is False

        mock_sentry.init.assert_called_once()
        kwargs = mock_sentry.init.call_args.kwargs
        assert kwargs["environment"] == "test"
        assert logger_module._sentry_initialized is True

    def test_empty_dsn_skips(self):
        assert init_sentry(dsn="") is False
        assert logger_module._sentry_initialized is False


class TestSetupLogger:
    def test_file_and_console_handlers(self, tmp_path, logger_name):
        logger = setup_logger(logger_name, str(tmp_path / "logs" / "app.log"))

        assert logger.level == logging.INFO
        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 5 * 1024 * 1024
        assert file_handlers[0].backupCount == 3
        assert (tmp_path / "logs").is_dir()

    def test_repeated_setup_does_not_stack_handlers(self, tmp_path, logger_name):
        log_file = str(tmp_path / "app.log")

        setup_logger(logger_name, log_file)
        logger = setup_logger(logger_name, log_file)

        assert len(logger.handlers) == 2

    def test_messages_reach_the_file(self, tmp_path, logger_name):
        log_file = tmp_path / "app.log"
        logger = setup_logger(logger_name, str(log_file))

        logger.warning("queue unreachable")
        for handler in logger.handlers:
            handler.flush()

        assert "WARNING - queue unreachable" in log_file.read_text(encoding="utf-8")

    def test_sentry_tag_applied_when_initialized(self, tmp_path, logger_name):
        mock_sentry = MagicMock()
        logger_module._sentry_initialized = True

        with patch.dict("sys.modules", {"sentry_sdk": mock_sentry}):
            setup_logger(logger_name, str(tmp_path / "app.log"), sentry_tag="jobs")

        mock_sentry.set_tag.assert_called_once_with("component", "jobs")
