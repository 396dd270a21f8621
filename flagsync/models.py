"""Data models for feature payloads.

Defines the feature set type, the decoded shape of inbound fetch/stream
payloads (:class:`WirePayload`), the flat :class:`ErrorKind` taxonomy
reported to observers, and the JSON codec used for the cache snapshot.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flagsync.errors import FeatureDecodeError

# Feature name → opaque feature value (e.g. ``{"defaultValue": ..., "rules": [...]}``).
FeatureSet = Dict[str, Any]


class ErrorKind(str, Enum):
    """Failure categories reported through the observer.

    ``DECRYPT_FAILURE`` is only reported when the coordinator is configured
    with ``report_decrypt_failures``; otherwise it is logged and swallowed.
    """

    LOAD_FAILURE = "load_failure"
    PARSE_FAILURE = "parse_failure"
    MISSING_ENCRYPTION_KEY = "missing_encryption_key"
    DECRYPT_FAILURE = "decrypt_failure"


class WirePayload(BaseModel):
    """Decoded body of a features fetch response or stream event.

    At most one of the two fields is meaningfully populated.  Extra keys
    sent by the server (``status``, ``dateUpdated``, ...) are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    features: Optional[FeatureSet] = None
    encrypted_features: Optional[str] = Field(default=None, alias="encryptedFeatures")

    @classmethod
    def decode(cls, raw: Union[bytes, str]) -> WirePayload:
        """Parse a raw payload, raising :class:`FeatureDecodeError` on bad input."""
        try:
            return cls.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError) as exc:
            raise FeatureDecodeError(f"Malformed features payload: {exc}") from exc

    @property
    def has_features(self) -> bool:
        return bool(self.features)

    @property
    def has_encrypted_features(self) -> bool:
        return bool(self.encrypted_features)


def encode_features(features: FeatureSet) -> bytes:
    """Serialise *features* to the cache snapshot format."""
    return json.dumps(features, sort_keys=True, separators=(",", ":")).encode("utf-8")


def decode_features(blob: Union[bytes, str]) -> FeatureSet:
    """Parse a cache snapshot back into a feature set.

    Raises :class:`FeatureDecodeError` if *blob* is not a JSON object.
    """
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FeatureDecodeError(f"Cached features are not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise FeatureDecodeError(
            f"Cached features must be a JSON object, got {type(data).__name__}"
        )
    return data
