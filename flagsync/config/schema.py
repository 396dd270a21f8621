"""Pydantic configuration models for flagsync."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from flagsync.constants import FEATURE_CACHE_KEY, FETCH_TIMEOUT


class CoordinatorConfig(BaseModel):
    """Read-only settings for :class:`~flagsync.coordinator.FeatureCoordinator`.

    Defaults: background sync is off (any stream is explicitly
    disconnected) and no encryption key is set (encrypted payloads always
    fail with ``MISSING_ENCRYPTION_KEY``).
    """

    model_config = ConfigDict(frozen=True)

    encryption_key: Optional[str] = Field(
        default=None,
        description="Base64 AES key for encryptedFeatures payloads.",
    )
    background_sync: bool = Field(
        default=False,
        description="Keep the live stream open to receive pushed updates.",
    )
    cache_key: str = Field(default=FEATURE_CACHE_KEY, min_length=1)
    stream_headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent when subscribing to the stream.",
    )
    report_decrypt_failures: bool = Field(
        default=False,
        description="Notify observers with DECRYPT_FAILURE instead of only logging.",
    )


class ClientConfig(BaseModel):
    """Top-level config file model."""

    model_config = ConfigDict(extra="forbid")

    api_url: Optional[str] = Field(default=None, description="Features endpoint.")
    stream_url: Optional[str] = Field(default=None, description="SSE endpoint.")
    encryption_key: Optional[str] = Field(
        default=None, description="Supports ${ENV_VAR}."
    )
    background_sync: bool = False
    report_decrypt_failures: bool = False
    cache_dir: Optional[str] = Field(
        default=None,
        description="Directory for the feature cache (defaults to the XDG cache dir).",
    )
    timeout: float = Field(default=FETCH_TIMEOUT, gt=0, description="Fetch timeout in seconds.")
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Headers for the one-shot fetch (values support ${ENV_VAR}).",
    )
    stream_headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Headers for the stream subscription (values support ${ENV_VAR}).",
    )

    @field_validator("api_url", "stream_url", "encryption_key", "cache_dir")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def to_coordinator_config(self) -> CoordinatorConfig:
        return CoordinatorConfig(
            encryption_key=self.encryption_key,
            background_sync=self.background_sync,
            stream_headers=dict(self.stream_headers),
            report_decrypt_failures=self.report_decrypt_failures,
        )
