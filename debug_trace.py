"""
debug_trace.py

Logging setup and trace helpers.
Call setup_logging() once at startup; set DIGITAL_DEBUG=1 (or pass
debug=True) to get DEBUG level output.
"""

import logging
import os
import sys
import traceback
from functools import wraps
from pathlib import Path
from typing import Union

import platformdirs

APP_NAME = "digital"

# Log file name inside the platform log directory
LOG_FILE_NAME = "digital_debug.log"

LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Trace categories logged at ERROR level, everything else is DEBUG
ERROR_CATEGORIES = frozenset({"ERROR", "CRASH"})

_trace_log = logging.getLogger("trace")
_handlers = []


def debug_enabled() -> bool:
    return os.environ.get("DIGITAL_DEBUG", "") not in ("", "0")


def default_log_file() -> Path:
    """Location of the debug log file."""
    return Path(platformdirs.user_log_dir(APP_NAME)) / LOG_FILE_NAME


def setup_logging(debug: bool = False, log_file: Union[None, bool, str, Path] = None) -> None:
    """Configure the root logger.

    Args:
        debug: Log DEBUG messages (also enabled by DIGITAL_DEBUG).
        log_file: True for the default log file, a path for a specific file,
            None to log to stderr only.
    """
    close_log()
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug or debug_enabled() else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    _add_handler(root, stream)

    if log_file:
        path = default_log_file() if log_file is True else Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
        except OSError as e:
            root.warning("Cannot open log file %s: %s", path, e)
        else:
            file_handler.setFormatter(formatter)
            _add_handler(root, file_handler)


def _add_handler(root: logging.Logger, handler: logging.Handler) -> None:
    root.addHandler(handler)
    _handlers.append(handler)


def trace(msg: str, category: str = "INFO"):
    """Log a trace message under a category."""
    level = logging.ERROR if category in ERROR_CATEGORIES else logging.DEBUG
    _trace_log.log(level, "[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Log the exception currently being handled."""
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not _trace_log.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
            trace(f"<<< {func_name}", category)
            return result
        return wrapper
    return decorator


def close_log():
    """Detach and close the handlers installed by setup_logging()."""
    root = logging.getLogger()
    while _handlers:
        h = _handlers.pop()
        root.removeHandler(h)
        h.close()
