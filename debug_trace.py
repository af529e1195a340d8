"""
debug_trace.py

Lightweight tracing for CodeFlow.

Every subsystem reports through ``trace(msg, category)``.  Lines go to
stderr and, when ``LOG_FILE`` is set, to a log file next to the working
directory.  Set ``CODEFLOW_TRACE=0`` in the environment to silence it.
"""

import os
import sys
import traceback
from datetime import datetime
from functools import wraps

# Tracing is on unless explicitly disabled
DEBUG_TRACE = os.environ.get("CODEFLOW_TRACE", "1") not in ("0", "false", "no")

# Categories that are only printed when named in CODEFLOW_TRACE_VERBOSE
# (comma separated), e.g. CODEFLOW_TRACE_VERBOSE=SYNC,PAINT
VERBOSE_CATEGORIES = {"SYNC", "PAINT"}
_VERBOSE_ENABLED = {
    c.strip().upper()
    for c in os.environ.get("CODEFLOW_TRACE_VERBOSE", "").split(",")
    if c.strip()
}

# Log file (None for stderr only)
LOG_FILE = os.environ.get("CODEFLOW_LOG_FILE", "codeflow_debug.log") or None

_log_file = None


def _get_log_file():
    global _log_file
    if LOG_FILE and _log_file is None:
        try:
            _log_file = open(LOG_FILE, "w", encoding="utf-8")
        except OSError:
            return None
    return _log_file


def trace(msg: str, category: str = "INFO"):
    """Print a trace message with timestamp."""
    if not DEBUG_TRACE:
        return
    if category in VERBOSE_CATEGORIES and category not in _VERBOSE_ENABLED:
        return

    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    line = f"[{timestamp}] [{category}] {msg}"

    print(line, file=sys.stderr, flush=True)

    log_file = _get_log_file()
    if log_file:
        try:
            log_file.write(line + "\n")
            log_file.flush()
        except (OSError, ValueError):
            pass


def trace_exception(msg: str = "Exception"):
    """Print the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator to trace entry/exit of a function."""
    def decorator(func):
        if not DEBUG_TRACE:
            return func

        @wraps(func)
        def wrapper(*args, **kwargs):
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
                trace(f"<<< {func_name}", category)
                return result
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
        return wrapper
    return decorator


def close_log():
    """Close log file."""
    global _log_file
    if _log_file:
        try:
            _log_file.close()
        except OSError:
            pass
        _log_file = None
