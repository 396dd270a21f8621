"""One-shot async fetch of the features endpoint."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from flagsync.constants import FETCH_TIMEOUT
from flagsync.errors import TransportError

logger = logging.getLogger(__name__)


class FetchTransport(ABC):
    """Performs a single request and returns the raw response body."""

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Return the response body for *url*.

        Raises :class:`TransportError` on any failure.  Implementations do
        not retry.
        """

    async def close(self) -> None:
        """Release transport resources."""


class HttpFetchTransport(FetchTransport):
    """``GET`` the features endpoint with :mod:`httpx`.

    Parameters
    ----------
    headers:
        Extra headers applied to every request (auth tokens, etc.).
    timeout:
        HTTP request timeout in seconds.
    """

    def __init__(
        self,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = FETCH_TIMEOUT,
    ) -> None:
        self._headers = headers or {}
        self._timeout = timeout
        self._client: Any = None  # lazy httpx.AsyncClient

    # ── lifecycle ───────────────────────────────────────────────────

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── public API ──────────────────────────────────────────────────

    async def fetch(self, url: str) -> bytes:
        client = self._ensure_client()
        try:
            resp = await client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                "unexpected response status",
                url=url,
                status_code=exc.response.status_code,
                orig_exc=exc,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(str(exc) or "request failed", url=url, orig_exc=exc) from exc
        logger.debug("Fetched %d bytes from %s", len(resp.content), url)
        return resp.content
