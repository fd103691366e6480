"""Tests for logging_config module."""

import logging
import pytest
from pathlib import Path
from unittest.mock import patch, MagicMock

from stackdash.logging_config import (
    get_logger,
    setup_logging,
    setup_tui_logging,
    setup_cli_logging,
    StructuredLogger,
    get_structured_logger,
    DEFAULT_LOG_DIR,
)


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    logger = logging.getLogger("stackdash")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True


class TestGetLogger:
    """Tests for get_logger function."""

    def test_logger_name_prefixed(self):
        assert get_logger("supervisor").name == "stackdash.supervisor"

    def test_same_name_returns_same_logger(self):
        assert get_logger("same") is get_logger("same")

    def test_children_use_root_handlers(self, tmp_path):
        log_file = tmp_path / "out.log"
        setup_logging(level=logging.INFO, log_file=log_file, console=False)

        get_logger("engine").info("hello from engine")
        for handler in logging.getLogger("stackdash").handlers:
            handler.flush()

        assert "stackdash.engine: hello from engine" in log_file.read_text()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_sets_level(self):
        setup_logging(level=logging.DEBUG, console=False)
        assert logging.getLogger("stackdash").level == logging.DEBUG

    def test_does_not_propagate(self):
        setup_logging(console=False)
        assert logging.getLogger("stackdash").propagate is False

    def test_creates_console_handler(self):
        setup_logging(level=logging.INFO, console=True)
        logger = logging.getLogger("stackdash")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.Handler)

    def test_rich_handler_preferred(self):
        from rich.logging import RichHandler

        setup_logging(console=True, rich_console=True)
        assert isinstance(logging.getLogger("stackdash").handlers[0], RichHandler)

    def test_plain_stream_handler_when_rich_disabled(self):
        setup_logging(console=True, rich_console=False)
        handler = logging.getLogger("stackdash").handlers[0]
        assert type(handler) is logging.StreamHandler

    def test_rich_console_handler_fallback(self):
        # Falls back to StreamHandler when Rich is not importable
        with patch.dict("sys.modules", {"rich.logging": None}):
            setup_logging(level=logging.INFO, console=True, rich_console=True)

            handler = logging.getLogger("stackdash").handlers[0]
            assert type(handler) is logging.StreamHandler

    def test_file_handler_creates_directory(self, tmp_path):
        log_file = tmp_path / "nested" / "dir" / "test.log"
        setup_logging(level=logging.INFO, log_file=log_file, console=False)

        assert log_file.parent.exists()
        handlers = logging.getLogger("stackdash").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)

    def test_clears_existing_handlers(self):
        logger = logging.getLogger("stackdash")
        logger.addHandler(logging.NullHandler())

        setup_logging(level=logging.INFO, console=False)

        assert logger.handlers == []


class TestSetupTuiLogging:
    """Tests for setup_tui_logging function."""

    def test_file_only(self, tmp_path):
        setup_tui_logging(log_file=tmp_path / "tui.log")

        handlers = logging.getLogger("stackdash").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)

    def test_returns_tui_logger(self, tmp_path):
        logger = setup_tui_logging(log_file=tmp_path / "tui.log")
        assert logger.name == "stackdash.tui"

    def test_uses_default_log_dir_when_none(self):
        with patch("stackdash.logging_config.setup_logging") as mock_setup:
            setup_tui_logging(log_file=None)

            call_kwargs = mock_setup.call_args[1]
            assert call_kwargs["log_file"] == DEFAULT_LOG_DIR / "tui.log"
            assert call_kwargs["console"] is False


class TestSetupCliLogging:
    """Tests for setup_cli_logging function."""

    def test_returns_cli_logger(self):
        assert setup_cli_logging().name == "stackdash.cli"

    def test_uses_warning_level(self):
        setup_cli_logging()
        assert logging.getLogger("stackdash").level == logging.WARNING


class TestStructuredLogger:
    """Tests for StructuredLogger class."""

    @pytest.fixture
    def mock_logger(self):
        return MagicMock(spec=logging.Logger)

    def test_plain_message_unchanged(self, mock_logger):
        StructuredLogger(mock_logger).info("Plain message")
        mock_logger.info.assert_called_once_with("Plain message")

    def test_levels_forwarded(self, mock_logger):
        log = StructuredLogger(mock_logger)
        log.debug("d")
        log.warning("w")
        log.error("e")
        log.exception("x")

        mock_logger.debug.assert_called_once_with("d")
        mock_logger.warning.assert_called_once_with("w")
        mock_logger.error.assert_called_once_with("e")
        mock_logger.exception.assert_called_once_with("x")

    def test_with_context_returns_new_logger(self, mock_logger):
        log = StructuredLogger(mock_logger)
        child = log.with_context(task="migrate")

        assert child is not log
        log.info("base")
        mock_logger.info.assert_called_with("base")

    def test_context_and_kwargs_appended(self, mock_logger):
        log = StructuredLogger(mock_logger).with_context(task="migrate")
        log.info("Exited", code=1)

        mock_logger.info.assert_called_once_with("Exited [task=migrate code=1]")

    def test_context_merges(self, mock_logger):
        log = StructuredLogger(mock_logger).with_context(a="1").with_context(b="2")
        log.info("Test")

        message = mock_logger.info.call_args[0][0]
        assert "a=1" in message
        assert "b=2" in message


class TestGetStructuredLogger:
    """Tests for get_structured_logger function."""

    def test_underlying_logger_name(self):
        logger = get_structured_logger("component")
        assert isinstance(logger, StructuredLogger)
        assert logger._logger.name == "stackdash.component"
