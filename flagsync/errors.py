"""Custom exception classes for flagsync."""

from typing import Optional


class FlagSyncError(Exception):
    """Base class for all custom exceptions in flagsync."""

    pass


class ConfigurationError(FlagSyncError):
    """Raised when loading or validating the configuration file fails."""

    pass


class TransportError(FlagSyncError):
    """
    Raised when a remote features source cannot be reached,
    or when it answers with an error status.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        orig_exc: Optional[Exception] = None,
    ):
        self.url = url
        self.status_code = status_code
        self.orig_exc = orig_exc

        full_msg = "Transport error"
        if url:
            full_msg += f" (url: {url})"
        if status_code is not None:
            full_msg += f" [HTTP {status_code}]"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class FeatureDecodeError(FlagSyncError):
    """Raised when a cache blob or wire payload does not have the expected shape."""

    pass
