"""
flagsync - feature-flag retrieval for client applications.

Reconciles a local cache, a one-shot remote fetch, and a live SSE stream
into one view of named feature flags, with support for encrypted
feature payloads.
"""

from flagsync.constants import CLIENT_NAME, CLIENT_VERSION
from flagsync.coordinator import FeatureCoordinator
from flagsync.models import ErrorKind, FeatureSet
from flagsync.observer import CallbackObserver, FeaturesObserver

__version__ = CLIENT_VERSION
__app_name__ = CLIENT_NAME

__all__ = [
    "CLIENT_NAME",
    "CLIENT_VERSION",
    "CallbackObserver",
    "ErrorKind",
    "FeatureCoordinator",
    "FeatureSet",
    "FeaturesObserver",
    "__version__",
    "__app_name__",
]
