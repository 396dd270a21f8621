"""Shared constants for flagsync."""

CLIENT_NAME = "flagsync"
CLIENT_VERSION = "0.1.0"

# Cache
FEATURE_CACHE_KEY = "FeatureCache.txt"

# Live updates
FEATURES_EVENT = "features"
STREAM_RECONNECT_DELAY = 3.0  # seconds, until the server sends a retry: hint

# HTTP defaults
FETCH_TIMEOUT = 10.0  # seconds for the one-shot features fetch

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"
