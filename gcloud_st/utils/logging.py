"""
Logging utilities for gcloud-st.

Provides console logging with colorized text output for interactive use,
JSON output for CI and scheduled jobs, a per-run identifier attached to every
record, and an entry/exit decorator for debugging.

Features:
    - Colorized console output through coloredlogs
    - Structured JSON logging when LOG_FORMAT=json
    - Run ID tracking across all records of one invocation
    - Entry/exit decorator with timing (DEBUG level)

Example usage:
    >>> from gcloud_st.utils.logging import get_logger, log_function_call
    >>>
    >>> logger = get_logger(__name__)
    >>>
    >>> @log_function_call
    >>> def upload(path: str) -> bool:
    >>>     logger.info("Uploading %s", path)
    >>>     return True
"""

import logging
import functools
import json
import os
import uuid
from typing import Any, Callable, TypeVar, cast, Optional, Dict
from datetime import datetime, timezone
from contextvars import ContextVar

import coloredlogs

# Type variable for generic decorator typing
F = TypeVar("F", bound=Callable[..., Any])

# One identifier per CLI invocation
_run_id: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


# ============================================================================
# Run ID Management
# ============================================================================

def get_run_id() -> str:
    """
    Get the current run ID, generating one on first use.

    Returns:
        Run ID string (a short UUID4 prefix)
    """
    run_id = _run_id.get()
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]
        _run_id.set(run_id)
    return run_id


def set_run_id(run_id: str) -> None:
    """Set the run ID for the current context."""
    _run_id.set(run_id)


def clear_run_id() -> None:
    """Clear the run ID for the current context."""
    _run_id.set(None)


# ============================================================================
# JSON Formatter
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for machine-readable output.

    Example output:
        {
            "timestamp": "2026-10-16T10:30:15.123456+00:00",
            "level": "INFO",
            "logger": "gcloud_st.uploader.uploader",
            "message": "Created object site/index.html",
            "run_id": "3f2c9a81b0d4",
            "extra": {"object_name": "site/index.html", "bytes": 1024}
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": get_run_id(),
        }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


def json_logging_requested() -> bool:
    """Return True when the LOG_FORMAT environment variable asks for JSON."""
    return os.getenv("LOG_FORMAT", "text").lower() == "json"


def setup_logging(
    level: str = "INFO",
    enable_colors: bool = True,
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure the root logger for the application.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_colors: Use coloredlogs for text output
        json_format: Force JSON (True) or text (False); None reads LOG_FORMAT

    Example:
        >>> setup_logging(level="WARNING")          # --quite true
        >>> setup_logging(level="DEBUG", enable_colors=False)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if json_format is None:
        json_format = json_logging_requested()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if json_format:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(console_handler)
    elif enable_colors:
        coloredlogs.install(
            level=log_level,
            fmt=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            logger=root_logger,
        )
    else:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        )
        root_logger.addHandler(console_handler)

    # The storage client libraries are chatty at DEBUG
    for noisy in ("urllib3", "google.auth", "google.resumable_media"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_function_call(func: F) -> F:
    """
    Decorator that logs function entry and exit at DEBUG level.

    Logs the call arguments on entry, the return value and elapsed time on
    exit, and the exception type on failure before re-raising it.

    Example:
        >>> @log_function_call
        >>> def ensure_bucket(client, bucket_name, project_id):
        >>>     ...
        >>>
        >>> # 2026-10-16 10:30:15 - gcloud_st... - DEBUG - ENTER ensure_bucket(...)
        >>> # 2026-10-16 10:30:16 - gcloud_st... - DEBUG - EXIT ensure_bucket (0.41s)
    """
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if not logger.isEnabledFor(logging.DEBUG):
            return func(*args, **kwargs)

        arg_names = func.__code__.co_varnames[: func.__code__.co_argcount]
        args_repr = [f"{name}={value!r}" for name, value in zip(arg_names, args)]
        kwargs_repr = [f"{key}={value!r}" for key, value in kwargs.items()]
        all_args = ", ".join(args_repr + kwargs_repr)

        logger.debug(
            f"ENTER {func.__name__}({all_args})",
            extra={"function": func.__name__, "event": "function_entry"},
        )
        start_time = datetime.now()

        try:
            result = func(*args, **kwargs)
        except Exception as error:
            execution_time = (datetime.now() - start_time).total_seconds()
            logger.debug(
                f"ERROR {func.__name__} raised {type(error).__name__}: {error}",
                extra={
                    "function": func.__name__,
                    "event": "function_error",
                    "duration_seconds": execution_time,
                    "error_type": type(error).__name__,
                },
            )
            raise

        execution_time = (datetime.now() - start_time).total_seconds()
        logger.debug(
            f"EXIT {func.__name__} -> {result!r} ({execution_time:.2f}s)",
            extra={
                "function": func.__name__,
                "event": "function_exit",
                "duration_seconds": execution_time,
            },
        )
        return result

    return cast(F, wrapper)
