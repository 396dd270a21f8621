"""Tests for encrypted feature payloads."""

from __future__ import annotations

import base64

import pytest

from flagsync.crypto import AesCbcCrypto, encrypt_features, generate_key

_KEY = base64.b64encode(b"0123456789abcdef").decode()
_IV = b"fedcba9876543210"


class TestAesCbcCrypto:
    def test_decrypts_encrypted_features(self):
        features = {"testfeature1": {"defaultValue": True, "rules": [{"force": False}]}}
        ciphertext = encrypt_features(features, _KEY, iv=_IV)
        assert AesCbcCrypto().decrypt(ciphertext, _KEY) == features

    def test_wire_format(self):
        ciphertext = encrypt_features({"a": 1}, _KEY, iv=_IV)
        iv_b64, sep, body_b64 = ciphertext.partition(".")
        assert sep == "."
        assert base64.b64decode(iv_b64) == _IV
        assert len(base64.b64decode(body_b64)) % 16 == 0

    @pytest.mark.parametrize("bits", [128, 192, 256])
    def test_all_key_sizes(self, bits):
        key = generate_key(bits)
        assert len(base64.b64decode(key)) == bits // 8
        assert AesCbcCrypto().decrypt(encrypt_features({"a": 1}, key), key) == {"a": 1}

    def test_wrong_key_returns_none(self):
        ciphertext = encrypt_features({"a": 1}, _KEY, iv=_IV)
        other = base64.b64encode(b"ffffffffffffffff").decode()
        assert AesCbcCrypto().decrypt(ciphertext, other) is None

    @pytest.mark.parametrize(
        "ciphertext",
        [
            "",
            "no-separator",
            "!!!.???",
            base64.b64encode(b"short").decode() + "." + base64.b64encode(b"x" * 16).decode(),
            base64.b64encode(_IV).decode() + ".",
            base64.b64encode(_IV).decode() + "." + base64.b64encode(b"x" * 15).decode(),
        ],
    )
    def test_malformed_ciphertext_returns_none(self, ciphertext):
        assert AesCbcCrypto().decrypt(ciphertext, _KEY) is None

    def test_malformed_key_returns_none(self):
        ciphertext = encrypt_features({"a": 1}, _KEY, iv=_IV)
        assert AesCbcCrypto().decrypt(ciphertext, "not base64!") is None
        assert AesCbcCrypto().decrypt(ciphertext, base64.b64encode(b"short").decode()) is None

    def test_non_object_plaintext_returns_none(self):
        from cryptography.hazmat.primitives import padding
        from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

        padder = padding.PKCS7(128).padder()
        padded = padder.update(b"[1, 2]") + padder.finalize()
        enc = Cipher(algorithms.AES(b"0123456789abcdef"), modes.CBC(_IV)).encryptor()
        body = enc.update(padded) + enc.finalize()
        ciphertext = f"{base64.b64encode(_IV).decode()}.{base64.b64encode(body).decode()}"
        assert AesCbcCrypto().decrypt(ciphertext, _KEY) is None


class TestHelpers:
    def test_encrypt_rejects_bad_key_size(self):
        with pytest.raises(ValueError):
            encrypt_features({"a": 1}, base64.b64encode(b"short").decode())

    def test_encrypt_rejects_bad_iv(self):
        with pytest.raises(ValueError):
            encrypt_features({"a": 1}, _KEY, iv=b"short")

    def test_generate_key_rejects_bad_size(self):
        with pytest.raises(ValueError):
            generate_key(100)

    def test_generated_keys_differ(self):
        assert generate_key() != generate_key()
