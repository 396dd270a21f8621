"""File logging for the flagsync CLI.

Everything goes to one timestamped file under ``logs/``.  Encryption keys
and header values registered with :data:`secret_redaction_filter` are
masked before a record is written.
"""

import logging
import logging.config
import os
import re
import sys
from datetime import datetime
from typing import Any, Dict, Optional, Set, Tuple  # noqa: UP035

from flagsync.constants import LOG_DIR

_MASK = "***REDACTED***"
_MIN_SECRET_LEN = 4
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# flagsync itself, then the HTTP client stack underneath it
_APP_LOGGERS = ("flagsync", "httpx", "httpcore")


class SecretRedactionFilter(logging.Filter):
    """Masks known secret strings in a record's message and arguments."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()
        self._pattern: Optional["re.Pattern[str]"] = None

    def register(self, value: str) -> None:
        """Add *value* to the masked set.  Values under four characters are skipped."""
        if not value or len(value) < _MIN_SECRET_LEN or value in self._secrets:
            return
        self._secrets.add(value)
        # longest first: a secret containing another must win
        alternatives = sorted(self._secrets, key=len, reverse=True)
        self._pattern = re.compile("|".join(re.escape(s) for s in alternatives))

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str) and self._pattern is not None:
            return self._pattern.sub(_MASK, value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = {key: self._scrub(val) for key, val in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._scrub(arg) for arg in record.args)
        return True


# Shared so the CLI can register secrets once the config is loaded.
secret_redaction_filter = SecretRedactionFilter()


def _build_log_config(level: str, log_fpath: str) -> Dict[str, Any]:
    debug = level == "DEBUG"
    loggers: Dict[str, Any] = {
        name: {
            "handlers": ["logfile"],
            "propagate": False,
            "level": level if name == "flagsync" else ("DEBUG" if debug else "WARNING"),
        }
        for name in _APP_LOGGERS
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "%(asctime)s %(levelname)-7s [%(name)s:%(lineno)d] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "logfile": {
                "class": "logging.FileHandler",
                "level": "DEBUG",
                "formatter": "plain",
                "filename": log_fpath,
                "encoding": "utf-8",
            },
        },
        "loggers": loggers,
        "root": {"handlers": ["logfile"], "level": "DEBUG" if debug else "WARNING"},
    }


def setup_logging(
    log_lvl_str: str, *, log_dir: str = LOG_DIR, quiet: bool = False
) -> Tuple[str, str]:
    """Route flagsync, httpx and httpcore logs to a new file in *log_dir*.

    An unknown *log_lvl_str* falls back to ``INFO``.  The HTTP loggers stay
    at ``WARNING`` unless the level is ``DEBUG``.  Returns the log file path
    and the level actually applied.
    """
    level = log_lvl_str.upper()
    if level not in _LEVELS:
        if not quiet:
            print(f"Unknown log level '{log_lvl_str}', falling back to INFO.")
        level = "INFO"

    os.makedirs(log_dir, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_fpath = os.path.join(log_dir, f"flagsync_{stamp}_{level}.log")

    try:
        logging.config.dictConfig(_build_log_config(level, log_fpath))
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as exc:
        print(f"Could not configure logging: {exc}", file=sys.stderr)
        return log_fpath, level

    for name in ("",) + _APP_LOGGERS:
        for handler in logging.getLogger(name).handlers:
            handler.addFilter(secret_redaction_filter)
    if not quiet:
        print(f"Logging {level} to {log_fpath}")
    return log_fpath, level
