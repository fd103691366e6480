"""
Logging configuration for Stackdash.

The TUI owns the terminal while it runs, so dashboard logs go to a file;
CLI commands log warnings to the console through Rich.
"""

import logging
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "stackdash"
DEFAULT_LOG_DIR = Path.home() / ".stackdash" / "logs"

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger namespaced under the stackdash root logger."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def _console_handler(rich_console: bool) -> logging.Handler:
    if rich_console:
        try:
            from rich.logging import RichHandler
            from rich.console import Console
        except ImportError:
            RichHandler = None
        if RichHandler is not None:
            return RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the stackdash root logger.

    Existing handlers are removed first so repeated calls don't stack
    handlers.

    Args:
        level: Log level for the root stackdash logger
        log_file: Optional file to append records to (parent dirs created)
        console: Whether to log to stderr
        rich_console: Prefer rich.logging.RichHandler for console output
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    if console:
        logger.addHandler(_console_handler(rich_console))

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def setup_tui_logging(log_file: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """File-only logging while the dashboard owns the terminal."""
    if log_file is None:
        log_file = DEFAULT_LOG_DIR / "tui.log"
    setup_logging(level=level, log_file=log_file, console=False)
    return get_logger("tui")


def setup_cli_logging() -> logging.Logger:
    """Warnings and errors only, on the console."""
    setup_logging(level=logging.WARNING, console=True)
    return get_logger("cli")


class StructuredLogger:
    """Thin wrapper that appends key=value context to every message."""

    def __init__(self, logger: logging.Logger, context: Optional[dict] = None):
        self._logger = logger
        self._context = dict(context or {})

    def with_context(self, **kwargs: Any) -> "StructuredLogger":
        merged = dict(self._context)
        merged.update(kwargs)
        return StructuredLogger(self._logger, merged)

    def _format(self, message: str, kwargs: dict) -> str:
        fields = dict(self._context)
        fields.update(kwargs)
        if not fields:
            return message
        suffix = " ".join(f"{k}={v}" for k, v in fields.items())
        return f"{message} [{suffix}]"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format(message, kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        self._logger.exception(self._format(message, kwargs))


def get_structured_logger(name: str) -> StructuredLogger:
    return StructuredLogger(get_logger(name))
