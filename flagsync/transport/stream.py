"""Live feature updates over Server-Sent Events.

A stream has two states::

    DISCONNECTED ──connect()──► CONNECTED ──disconnect()──► DISCONNECTED

Both transitions are idempotent.  While connected, a background task
keeps the subscription open, reconnecting after dropped connections, and
dispatches each named event to the handlers registered with :meth:`on`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

import httpx
from httpx_sse import aconnect_sse

from flagsync.constants import FETCH_TIMEOUT, STREAM_RECONNECT_DELAY

logger = logging.getLogger(__name__)

# (event_id, event_name, data) -> None
EventHandler = Callable[[Optional[str], str, Optional[str]], Awaitable[None]]


class StreamState(str, Enum):
    """Subscription states."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class StreamTransport(ABC):
    """Long-lived event subscription.

    Parameters
    ----------
    url:
        Stream endpoint.
    headers:
        Extra headers sent when (re)connecting.
    """

    def __init__(self, url: str, headers: Optional[Dict[str, str]] = None) -> None:
        self._url = url
        self._headers = dict(headers or {})
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._state = StreamState.DISCONNECTED

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is StreamState.CONNECTED

    def on(self, event_name: str, handler: EventHandler) -> None:
        """Register *handler* for *event_name*.  Re-registering is a no-op."""
        handlers = self._handlers.setdefault(event_name, [])
        if handler not in handlers:
            handlers.append(handler)

    @abstractmethod
    def connect(self) -> None:
        """Open the subscription.  No-op when already connected."""

    @abstractmethod
    def disconnect(self) -> None:
        """Request the subscription be closed.  No-op when disconnected.

        An event already being dispatched may still complete.
        """

    async def aclose(self) -> None:
        """Disconnect and wait until no further events can be dispatched."""
        self.disconnect()

    async def _dispatch(
        self, event_id: Optional[str], event_name: str, data: Optional[str]
    ) -> None:
        for handler in list(self._handlers.get(event_name, ())):
            try:
                await handler(event_id, event_name, data)
            except Exception:
                logger.exception("Handler for stream event '%s' failed", event_name)


class SSEStream(StreamTransport):
    """:class:`StreamTransport` backed by ``httpx`` + ``httpx-sse``.

    Parameters
    ----------
    url:
        SSE endpoint.
    headers:
        Extra headers (e.g. ``Authorization``).
    reconnect_delay:
        Seconds to wait before reconnecting.  Replaced by the server's
        ``retry:`` field when one is sent.
    client:
        Optional pre-built ``httpx.AsyncClient``; the stream owns and closes
        the client it creates when none is given.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        *,
        reconnect_delay: float = STREAM_RECONNECT_DELAY,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(url, headers)
        self._reconnect_delay = reconnect_delay
        self._client = client
        self._task: Optional[asyncio.Task[None]] = None
        self._last_event_id: Optional[str] = None

    @property
    def reconnect_delay(self) -> float:
        return self._reconnect_delay

    # ── Lifecycle ────────────────────────────────────────────────────

    def connect(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._state = StreamState.CONNECTED
        self._task = asyncio.create_task(self._run(), name="sse-stream")
        logger.info("Stream subscription started: %s", self._url)

    def disconnect(self) -> None:
        if self._state is StreamState.DISCONNECTED and self._task is None:
            logger.debug("Stream already disconnected: %s", self._url)
            return
        self._state = StreamState.DISCONNECTED
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.info("Stream subscription stopped: %s", self._url)

    async def aclose(self) -> None:
        task = self._task
        self.disconnect()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Internal ─────────────────────────────────────────────────────

    async def _run(self) -> None:
        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(
            timeout=httpx.Timeout(FETCH_TIMEOUT, read=None),
        )
        try:
            while self._state is StreamState.CONNECTED:
                try:
                    await self._consume(client)
                except httpx.HTTPError as exc:
                    logger.warning("Stream %s failed: %s", self._url, exc)
                if self._state is not StreamState.CONNECTED:
                    break
                logger.debug("Reconnecting to %s in %.1fs", self._url, self._reconnect_delay)
                await asyncio.sleep(self._reconnect_delay)
        except Exception:
            logger.exception("Stream %s stopped unexpectedly", self._url)
        finally:
            if self._task is asyncio.current_task():
                self._state = StreamState.DISCONNECTED
                self._task = None
            if owns_client:
                await client.aclose()

    async def _consume(self, client: httpx.AsyncClient) -> None:
        headers = dict(self._headers)
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        async with aconnect_sse(client, "GET", self._url, headers=headers) as source:
            source.response.raise_for_status()
            logger.debug("Stream connected: %s", self._url)
            async for sse in source.aiter_sse():
                if sse.retry is not None:
                    self._reconnect_delay = sse.retry / 1000.0
                if sse.id:
                    self._last_event_id = sse.id
                await self._dispatch(sse.id or None, sse.event, sse.data or None)
        logger.debug("Stream closed by server: %s", self._url)
