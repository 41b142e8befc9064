"""Logging setup shared by the CLI and the import engine.

Every module logs through ``get_logger(__name__)``, which places it under
the ``import_reconciler`` logger configured by ``setup_logging``.
"""

import logging
import sys
import time
from pathlib import Path

from import_reconciler.errors import ImportReconcilerError

DEFAULT_LOG_FILE = "import_reconciler.log"
ROOT_LOGGER_NAME = "import_reconciler"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Matched as substrings of the lowercased key, so "ledger_token" is masked too
SENSITIVE_KEYS = ('password', 'token', 'secret', 'api_key', 'authorization')
MASK = '***'


def is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def mask_context(context: dict[str, object]) -> dict[str, object]:
    """Replace the values of credential-like keys with a mask.

    Args:
        context: Values attached to a log message.

    Returns:
        A copy safe to write to the log file.
    """
    return {k: MASK if is_sensitive(k) else v for k, v in context.items()}


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
) -> logging.Logger:
    """Attach file and console handlers to the package logger.

    Calling it again replaces (and closes) the handlers from the previous
    call, so the CLI can reconfigure once settings.yaml has been read.

    Args:
        level: Level name; unknown names fall back to INFO.
        log_file: Log file path (DEFAULT_LOG_FILE when None).
        console_output: Also log to stderr.

    Returns:
        The ``import_reconciler`` logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = logging.FileHandler(Path(log_file or DEFAULT_LOG_FILE), encoding="utf-8")
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the package logger for a module name.

    ``get_logger(__name__)`` inside the package is used unchanged; any
    other name is nested under ``import_reconciler``.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LogContext:
    """Logs the start, duration and outcome of a ledger-facing operation.

    Expected failures (``ImportReconcilerError``) are logged as warnings
    without a traceback; anything else is logged as an error with one.
    Exceptions are never suppressed.

    Example:
        >>> with LogContext(logger, "preview load", transactions=42):
        ...     session.load_preview(preview)
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: object):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.elapsed = 0.0
        self._started = 0.0

    def __enter__(self) -> "LogContext":
        details = ", ".join(f"{k}={v}" for k, v in mask_context(self.context).items())
        self.logger.debug(f"Starting {self.operation}: {details}")
        self._started = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> bool:
        self.elapsed = time.perf_counter() - self._started
        if exc_type is None:
            self.logger.debug(f"Completed {self.operation} in {self.elapsed:.2f}s")
        elif isinstance(exc_val, ImportReconcilerError):
            self.logger.warning(
                f"{self.operation} failed after {self.elapsed:.2f}s: {exc_val}"
            )
        else:
            self.logger.error(
                f"Error in {self.operation}: {exc_type.__name__}: {exc_val}",
                exc_info=True,
            )
        return False
