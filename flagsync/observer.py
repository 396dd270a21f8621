"""Observer interface for feature fetch outcomes.

Every notification carries ``is_remote``: ``False`` for the local cache,
``True`` for the one-shot fetch and for live stream events.  Observers may
be called from any task and are responsible for their own thread safety.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from flagsync.models import ErrorKind, FeatureSet


class FeaturesObserver(ABC):
    """Receives feature sets and failures from :class:`FeatureCoordinator`."""

    @abstractmethod
    def on_features_fetched(self, features: FeatureSet, is_remote: bool) -> None:
        """Called with a usable feature set."""

    @abstractmethod
    def on_features_fetch_failed(self, error: ErrorKind, is_remote: bool) -> None:
        """Called once per failed cache load, fetch, or stream event."""


class CallbackObserver(FeaturesObserver):
    """Adapts two plain callables to the observer interface."""

    def __init__(
        self,
        on_success: Callable[[FeatureSet, bool], None],
        on_failure: Optional[Callable[[ErrorKind, bool], None]] = None,
    ) -> None:
        self._on_success = on_success
        self._on_failure = on_failure

    def on_features_fetched(self, features: FeatureSet, is_remote: bool) -> None:
        self._on_success(features, is_remote)

    def on_features_fetch_failed(self, error: ErrorKind, is_remote: bool) -> None:
        if self._on_failure is not None:
            self._on_failure(error, is_remote)
