"""Decryption of encrypted feature payloads.

Servers running with payload encryption send ``encryptedFeatures`` instead
of ``features``.  The value is ``"<base64 iv>.<base64 ciphertext>"``: the
JSON feature set encrypted with AES-CBC (PKCS7 padding) under a shared
base64-encoded key.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from flagsync.models import FeatureSet, encode_features

logger = logging.getLogger(__name__)

_IV_SIZE = 16
_VALID_KEY_SIZES = frozenset({16, 24, 32})


class CryptoService(ABC):
    """Turns an encrypted features string into a feature set."""

    @abstractmethod
    def decrypt(self, ciphertext: str, key: str) -> Optional[FeatureSet]:
        """Return the decrypted feature set, or ``None`` on any failure."""


class AesCbcCrypto(CryptoService):
    """AES-CBC decryption of ``"<iv>.<ciphertext>"`` payloads."""

    def decrypt(self, ciphertext: str, key: str) -> Optional[FeatureSet]:
        try:
            raw_key = base64.b64decode(key, validate=True)
            iv_b64, _, body_b64 = ciphertext.partition(".")
            iv = base64.b64decode(iv_b64, validate=True)
            body = base64.b64decode(body_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.debug("Encrypted features are not valid base64: %s", exc)
            return None

        if len(raw_key) not in _VALID_KEY_SIZES or len(iv) != _IV_SIZE or not body:
            logger.debug(
                "Bad encrypted features layout (key=%d bytes, iv=%d bytes, body=%d bytes)",
                len(raw_key),
                len(iv),
                len(body),
            )
            return None

        try:
            decryptor = Cipher(algorithms.AES(raw_key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(body) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            data = json.loads(plaintext)
        except (ValueError, UnicodeDecodeError) as exc:
            # Wrong key and corrupt ciphertext both end up here.
            logger.debug("Failed to decrypt features: %s", exc)
            return None

        if not isinstance(data, dict):
            logger.debug("Decrypted features are not a JSON object")
            return None
        return data


def encrypt_features(features: FeatureSet, key: str, iv: Optional[bytes] = None) -> str:
    """Encrypt *features* into the ``"<iv>.<ciphertext>"`` wire format."""
    raw_key = base64.b64decode(key, validate=True)
    if len(raw_key) not in _VALID_KEY_SIZES:
        raise ValueError(f"AES key must be 16, 24 or 32 bytes, got {len(raw_key)}")
    iv = iv if iv is not None else os.urandom(_IV_SIZE)
    if len(iv) != _IV_SIZE:
        raise ValueError(f"IV must be {_IV_SIZE} bytes, got {len(iv)}")

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(encode_features(features)) + padder.finalize()
    encryptor = Cipher(algorithms.AES(raw_key), modes.CBC(iv)).encryptor()
    body = encryptor.update(padded) + encryptor.finalize()
    return f"{base64.b64encode(iv).decode()}.{base64.b64encode(body).decode()}"


def generate_key(bits: int = 128) -> str:
    """Return a fresh random base64-encoded AES key."""
    if bits // 8 not in _VALID_KEY_SIZES or bits % 8:
        raise ValueError(f"Unsupported AES key size: {bits} bits")
    return base64.b64encode(os.urandom(bits // 8)).decode()
