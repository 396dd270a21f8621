"""Remote feature sources — one-shot fetch and live stream."""

from flagsync.transport.fetch import FetchTransport, HttpFetchTransport
from flagsync.transport.stream import SSEStream, StreamState, StreamTransport

__all__ = [
    "FetchTransport",
    "HttpFetchTransport",
    "SSEStream",
    "StreamState",
    "StreamTransport",
]
