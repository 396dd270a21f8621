"""Tests for logging setup and secret redaction."""

from __future__ import annotations

import logging
import os
import tempfile

from flagsync.display.logging_config import SecretRedactionFilter, setup_logging


def _record(msg, args=()):
    return logging.LogRecord("flagsync.test", logging.INFO, __file__, 1, msg, args, None)


class TestSecretRedactionFilter:
    def test_redacts_message_and_args(self):
        f = SecretRedactionFilter()
        f.register("Ns04T5n9+59rl2x3SlNHtQ==")
        rec = _record("key=%s", ("Ns04T5n9+59rl2x3SlNHtQ==",))
        assert f.filter(rec) is True
        assert "Ns04T5n9" not in rec.getMessage()
        assert "***REDACTED***" in rec.getMessage()

    def test_short_values_ignored(self):
        f = SecretRedactionFilter()
        f.register("abc")
        rec = _record("abc")
        f.filter(rec)
        assert rec.getMessage() == "abc"

    def test_non_string_args_untouched(self):
        f = SecretRedactionFilter()
        f.register("secret-token")
        rec = _record("%d bytes from %s", (42, "secret-token"))
        f.filter(rec)
        assert rec.getMessage() == "42 bytes from ***REDACTED***"

    def test_dict_args_and_overlapping_secrets(self):
        f = SecretRedactionFilter()
        f.register("token")
        f.register("token-with-suffix")
        rec = _record("auth=%(auth)s", ({"auth": "token-with-suffix"},))
        f.filter(rec)
        assert rec.getMessage() == "auth=***REDACTED***"


def _reset_logging() -> None:
    for name in ("", "flagsync", "httpx", "httpcore"):
        lg = logging.getLogger(name)
        for handler in list(lg.handlers):
            if isinstance(handler, logging.FileHandler):
                lg.removeHandler(handler)
                handler.close()
        if name:
            lg.propagate = True
            lg.setLevel(logging.NOTSET)


class TestSetupLogging:
    def test_creates_log_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            try:
                log_fpath, level = setup_logging("debug", log_dir=tmpdir, quiet=True)
                assert level == "DEBUG"
                assert os.path.dirname(log_fpath) == tmpdir
                assert os.path.basename(log_fpath).startswith("flagsync_")
                assert logging.getLogger("flagsync").level == logging.DEBUG
                assert logging.getLogger("httpx").level == logging.DEBUG
            finally:
                _reset_logging()

    def test_invalid_level_falls_back_to_info(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            try:
                _, level = setup_logging("verbose", log_dir=tmpdir, quiet=True)
                assert level == "INFO"
                assert logging.getLogger("httpx").level == logging.WARNING
            finally:
                _reset_logging()

    def test_redaction_filter_attached(self):
        from flagsync.display.logging_config import secret_redaction_filter

        with tempfile.TemporaryDirectory() as tmpdir:
            try:
                setup_logging("info", log_dir=tmpdir, quiet=True)
                handlers = logging.getLogger("flagsync").handlers
                assert handlers
                assert all(secret_redaction_filter in h.filters for h in handlers)
            finally:
                _reset_logging()
