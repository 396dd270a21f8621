"""Feature coordinator — reconciles cache, fetch, and stream.

:meth:`FeatureCoordinator.fetch_features` reports the cached snapshot
synchronously, then starts the one-shot fetch and opens (or closes) the
live stream.  Every remote payload, whatever its origin, goes through
:meth:`FeatureCoordinator.merge_and_cache`, so cache writes and
success/failure reporting follow one rule set:

=========================================  ==================================
Payload                                    Outcome
=========================================  ==================================
non-empty ``features``                     persist, report success
``encryptedFeatures`` + key, decrypts      persist, report success
``encryptedFeatures`` + key, fails         log (report only if configured)
``encryptedFeatures`` without key          ``MISSING_ENCRYPTION_KEY``
anything else, or undecodable              ``PARSE_FAILURE``
=========================================  ==================================

The cache is never overwritten by a failed or empty payload.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Dict, Optional, Set, Union

import httpx

from flagsync.cache import CacheStore
from flagsync.config.schema import CoordinatorConfig
from flagsync.constants import FEATURES_EVENT
from flagsync.crypto import AesCbcCrypto, CryptoService
from flagsync.errors import FeatureDecodeError, TransportError
from flagsync.models import ErrorKind, FeatureSet, WirePayload, decode_features, encode_features
from flagsync.observer import FeaturesObserver
from flagsync.transport.fetch import FetchTransport
from flagsync.transport.stream import SSEStream, StreamTransport

logger = logging.getLogger(__name__)

StreamFactory = Callable[..., StreamTransport]


def is_stream_url(url: str) -> bool:
    """Return ``True`` if *url* is an absolute http(s) URL with a host."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


class FeatureCoordinator:
    """Orchestrates the cache, the one-shot fetch, and the live stream.

    Parameters
    ----------
    observer:
        Receives every success and failure, tagged with ``is_remote``.
    cache:
        Storage for the feature snapshot.
    fetch_transport:
        Performs the one-shot fetch.
    config:
        Encryption key, background sync, and related settings.
    crypto:
        Decrypts ``encryptedFeatures`` payloads.  Defaults to
        :class:`AesCbcCrypto`.
    stream_factory:
        Called as ``stream_factory(url, headers=...)`` to build the live
        stream.  Defaults to :class:`SSEStream`.
    """

    def __init__(
        self,
        observer: FeaturesObserver,
        cache: CacheStore,
        fetch_transport: FetchTransport,
        config: Optional[CoordinatorConfig] = None,
        *,
        crypto: Optional[CryptoService] = None,
        stream_factory: Optional[StreamFactory] = None,
    ) -> None:
        self._observer = observer
        self._cache = cache
        self._fetch_transport = fetch_transport
        self._config = config or CoordinatorConfig()
        self._crypto = crypto or AesCbcCrypto()
        self._stream_factory: StreamFactory = stream_factory or SSEStream

        self._stream: Optional[StreamTransport] = None
        self._write_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    @property
    def stream(self) -> Optional[StreamTransport]:
        return self._stream

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Public API ───────────────────────────────────────────────────

    def fetch_features(
        self, api_url: Optional[str] = None, stream_url: Optional[str] = None
    ) -> None:
        """Report cached features, then refresh from the remote sources.

        The cache notification is delivered before this method returns.
        The fetch and the stream run as tasks on the running event loop,
        which must exist whenever *api_url* or a stream is requested.
        """
        if self._closed:
            raise RuntimeError("FeatureCoordinator is closed")

        self._load_cached()

        if api_url:
            self._spawn(self._fetch_remote(api_url))

        if stream_url:
            if not is_stream_url(stream_url):
                logger.warning("Ignoring invalid stream URL: %s", stream_url)
            elif self._config.background_sync:
                self._open_stream(stream_url)
            else:
                self._close_stream()

    async def merge_and_cache(
        self, raw: Union[bytes, str], is_remote: bool = True
    ) -> Optional[ErrorKind]:
        """Decode a remote payload, persist it, and notify the observer.

        Returns ``None`` on success, otherwise the failure kind.  A decrypt
        failure is returned as ``DECRYPT_FAILURE`` even when it is not
        reported to the observer.
        """
        try:
            payload = WirePayload.decode(raw)
        except FeatureDecodeError as exc:
            logger.error("Failed to parse remote features: %s", exc)
            return self._fail(ErrorKind.PARSE_FAILURE, is_remote)

        if payload.has_features:
            features = payload.features
        elif payload.has_encrypted_features:
            key = self._config.encryption_key
            if not key:
                logger.error("Received encrypted features but no encryption key is configured")
                return self._fail(ErrorKind.MISSING_ENCRYPTION_KEY, is_remote)
            features = self._crypto.decrypt(payload.encrypted_features or "", key)
            if features is None:
                logger.warning("Failed to decrypt remote features; cached features kept")
                if self._config.report_decrypt_failures:
                    self._notify_failure(ErrorKind.DECRYPT_FAILURE, is_remote)
                return ErrorKind.DECRYPT_FAILURE
            if not features:
                logger.error("Decrypted features payload is empty")
                return self._fail(ErrorKind.PARSE_FAILURE, is_remote)
        else:
            logger.error("Remote payload has neither features nor encryptedFeatures")
            return self._fail(ErrorKind.PARSE_FAILURE, is_remote)

        await self._persist(features)
        self._notify_success(features, is_remote)
        return None

    async def wait(self) -> None:
        """Wait until every pending fetch has been merged or reported."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        """Stop the stream and drop pending fetches.

        After closing, stream events and unfinished fetches are ignored.
        """
        if self._closed:
            return
        self._closed = True
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.aclose()
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Feature coordinator closed")

    # ── Cache ────────────────────────────────────────────────────────

    def _load_cached(self) -> None:
        try:
            blob = self._cache.get(self._config.cache_key)
        except Exception as exc:
            logger.error("Failed to read local features: %s", exc)
            blob = None

        if blob is None:
            logger.error("Failed to load local features")
            self._notify_failure(ErrorKind.LOAD_FAILURE, False)
            return

        try:
            features = decode_features(blob)
        except FeatureDecodeError as exc:
            logger.error("Failed to parse local features: %s", exc)
            self._notify_failure(ErrorKind.PARSE_FAILURE, False)
            return

        self._notify_success(features, False)

    async def _persist(self, features: FeatureSet) -> None:
        blob = encode_features(features)
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._cache.put, self._config.cache_key, blob)
            except Exception as exc:
                logger.warning("Failed to write feature cache: %s", exc)

    # ── Fetch ────────────────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _fetch_remote(self, api_url: str) -> None:
        try:
            body = await self._fetch_transport.fetch(api_url)
        except TransportError as exc:
            logger.error("Failed to get features: %s", exc)
            if not self._closed:
                self._notify_failure(ErrorKind.LOAD_FAILURE, True)
            return
        except Exception:
            logger.exception("Fetch transport raised unexpectedly for %s", api_url)
            if not self._closed:
                self._notify_failure(ErrorKind.LOAD_FAILURE, True)
            return
        if self._closed:
            return
        await self.merge_and_cache(body, is_remote=True)

    # ── Stream ───────────────────────────────────────────────────────

    def _open_stream(self, stream_url: str) -> None:
        stream = self._stream
        if stream is not None and stream.url != stream_url:
            self._spawn(stream.aclose())
            stream = None
        if stream is None:
            headers: Dict[str, str] = dict(self._config.stream_headers)
            stream = self._stream_factory(stream_url, headers=headers)
            stream.on(FEATURES_EVENT, self._on_stream_event)
            self._stream = stream
        stream.connect()

    def _close_stream(self) -> None:
        if self._stream is None:
            logger.debug("Background sync disabled; no stream open")
            return
        self._stream.disconnect()

    async def _on_stream_event(
        self, event_id: Optional[str], event_name: str, data: Optional[str]
    ) -> None:
        if self._closed:
            logger.debug("Dropping stream event %s: coordinator closed", event_id or "-")
            return
        if data is None:
            return
        await self.merge_and_cache(data.encode("utf-8"), is_remote=True)

    # ── Notifications ────────────────────────────────────────────────

    def _fail(self, error: ErrorKind, is_remote: bool) -> ErrorKind:
        self._notify_failure(error, is_remote)
        return error

    def _notify_success(self, features: FeatureSet, is_remote: bool) -> None:
        try:
            self._observer.on_features_fetched(features, is_remote)
        except Exception:
            logger.exception("Observer failed handling fetched features")

    def _notify_failure(self, error: ErrorKind, is_remote: bool) -> None:
        try:
            self._observer.on_features_fetch_failed(error, is_remote)
        except Exception:
            logger.exception("Observer failed handling %s", error.value)
