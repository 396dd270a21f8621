"""Tests for the command-line entry point."""

from __future__ import annotations

import base64
import json
import os
import tempfile

import pytest

from flagsync.cli import main
from flagsync.crypto import AesCbcCrypto


class TestCli:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "fetch" in capsys.readouterr().out

    def test_keygen(self, capsys):
        main(["keygen", "--bits", "256"])
        key = capsys.readouterr().out.strip()
        assert len(base64.b64decode(key)) == 32

    def test_encrypt(self, capsys):
        key = base64.b64encode(b"0123456789abcdef").decode()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "features.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"dark-mode": {"defaultValue": True}}, f)
            main(["encrypt", path, "--key", key])

        payload = json.loads(capsys.readouterr().out)
        decrypted = AesCbcCrypto().decrypt(payload["encryptedFeatures"], key)
        assert decrypted == {"dark-mode": {"defaultValue": True}}

    def test_encrypt_requires_key(self, monkeypatch, capsys):
        monkeypatch.delenv("FLAGSYNC_ENCRYPTION_KEY", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            main(["encrypt", "features.json"])
        assert exc_info.value.code == 1
        assert "encryption key is required" in capsys.readouterr().err

    def test_encrypt_rejects_non_object(self, capsys):
        key = base64.b64encode(b"0123456789abcdef").decode()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "features.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("[1, 2]")
            with pytest.raises(SystemExit):
                main(["encrypt", path, "--key", key])

    def test_fetch_with_missing_config(self, monkeypatch, capsys):
        calls = []
        monkeypatch.setattr(
            "flagsync.cli.setup_logging", lambda *a, **kw: calls.append(a) or ("", "INFO")
        )
        with pytest.raises(SystemExit) as exc_info:
            main(["fetch", "--config", "/nonexistent/flagsync.yaml"])
        assert exc_info.value.code == 1
        assert "Configuration error" in capsys.readouterr().err
        assert calls == [("info",)]

    def test_fetch_reports_cached_features(self, monkeypatch, capsys):
        monkeypatch.setattr("flagsync.cli.setup_logging", lambda *a, **kw: ("", "INFO"))
        with tempfile.TemporaryDirectory() as tmpdir:
            cache_dir = os.path.join(tmpdir, "cache")
            from flagsync.cache import FileCacheStore
            from flagsync.constants import FEATURE_CACHE_KEY

            FileCacheStore(cache_dir).put(FEATURE_CACHE_KEY, b'{"a":1}')
            cfg_path = os.path.join(tmpdir, "flagsync.yaml")
            with open(cfg_path, "w", encoding="utf-8") as f:
                f.write(f"cache_dir: {cache_dir}\n")

            main(["fetch", "--config", cfg_path])

        out = json.loads(capsys.readouterr().out.strip())
        assert out == {"source": "cache", "features": {"a": 1}}
