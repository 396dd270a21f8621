"""CLI argument parsing and main entry point.

Subcommands:

* ``flagsync fetch``   — load cached features, fetch, and optionally watch the stream.
* ``flagsync keygen``  — print a new base64 AES key.
* ``flagsync encrypt`` — encrypt a features JSON file into the wire format.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from flagsync.constants import CLIENT_NAME, CLIENT_VERSION
from flagsync.display.logging_config import secret_redaction_filter, setup_logging
from flagsync.errors import ConfigurationError
from flagsync.models import ErrorKind, FeatureSet
from flagsync.observer import FeaturesObserver

module_logger = logging.getLogger(__name__)

# Config file search order (first match wins)
_CONFIG_SEARCH_ORDER = ("flagsync.yaml", "flagsync.yml")


def _find_config_file() -> str:
    """Locate the config file in the current directory.

    Falls back to ``CWD/flagsync.yaml`` if nothing exists (loader will error).
    """
    for name in _CONFIG_SEARCH_ORDER:
        candidate = os.path.join(os.getcwd(), name)
        if os.path.isfile(candidate):
            return candidate
    return os.path.join(os.getcwd(), _CONFIG_SEARCH_ORDER[0])


class _PrintingObserver(FeaturesObserver):
    """Writes each notification to stdout as one JSON line."""

    def on_features_fetched(self, features: FeatureSet, is_remote: bool) -> None:
        source = "remote" if is_remote else "cache"
        print(json.dumps({"source": source, "features": features}, sort_keys=True))

    def on_features_fetch_failed(self, error: ErrorKind, is_remote: bool) -> None:
        source = "remote" if is_remote else "cache"
        print(json.dumps({"source": source, "error": error.value}), file=sys.stderr)


# ── ``flagsync fetch`` ──────────────────────────────────────────────────


async def _run_fetch(config_path: str, watch: Optional[float]) -> None:
    from flagsync.cache import FileCacheStore
    from flagsync.config.loader import load_client_config
    from flagsync.coordinator import FeatureCoordinator
    from flagsync.transport.fetch import HttpFetchTransport

    cfg = load_client_config(config_path)
    if cfg.encryption_key:
        secret_redaction_filter.register(cfg.encryption_key)
    for value in list(cfg.headers.values()) + list(cfg.stream_headers.values()):
        secret_redaction_filter.register(value)

    cache = FileCacheStore(cfg.cache_dir) if cfg.cache_dir else FileCacheStore()
    transport = HttpFetchTransport(headers=cfg.headers, timeout=cfg.timeout)
    coordinator = FeatureCoordinator(
        _PrintingObserver(),
        cache,
        transport,
        cfg.to_coordinator_config(),
    )
    try:
        coordinator.fetch_features(cfg.api_url, cfg.stream_url)
        await coordinator.wait()
        if watch and coordinator.stream is not None:
            module_logger.info("Watching stream for %.1fs", watch)
            await asyncio.sleep(watch)
    finally:
        await coordinator.close()
        await transport.close()


def _cmd_fetch(args: argparse.Namespace) -> None:
    """Entry-point for ``flagsync fetch``."""
    setup_logging(args.log_level, quiet=True)
    module_logger.info("---- %s v%s fetch ----", CLIENT_NAME, CLIENT_VERSION)

    config_path = args.config or os.environ.get("FLAGSYNC_CONFIG") or _find_config_file()
    try:
        asyncio.run(_run_fetch(os.path.abspath(config_path), args.watch))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        module_logger.info("Interrupted by user")


# ── ``flagsync keygen`` / ``flagsync encrypt`` ──────────────────────────


def _cmd_keygen(args: argparse.Namespace) -> None:
    """Entry-point for ``flagsync keygen``."""
    from flagsync.crypto import generate_key

    print(generate_key(args.bits))


def _cmd_encrypt(args: argparse.Namespace) -> None:
    """Entry-point for ``flagsync encrypt``."""
    from flagsync.crypto import encrypt_features

    key = args.key or os.environ.get("FLAGSYNC_ENCRYPTION_KEY")
    if not key:
        print("An encryption key is required (--key or FLAGSYNC_ENCRYPTION_KEY).", file=sys.stderr)
        sys.exit(1)
    try:
        with open(args.path, "r", encoding="utf-8") as fh:
            features = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Cannot read features file {args.path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(features, dict):
        print("Features file must contain a JSON object.", file=sys.stderr)
        sys.exit(1)
    try:
        encrypted = encrypt_features(features, key)
    except ValueError as exc:
        print(f"Invalid encryption key: {exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps({"encryptedFeatures": encrypted}))


# ── CLI parser construction ──────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with fetch/keygen/encrypt subcommands."""
    parser = argparse.ArgumentParser(
        prog=CLIENT_NAME,
        description=f"{CLIENT_NAME} v{CLIENT_VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # ── fetch ───────────────────────────────────────────────────
    sp_fetch = subparsers.add_parser(
        "fetch",
        help="Report cached features, fetch remote features, optionally watch the stream",
    )
    sp_fetch.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="Path to configuration file (YAML). Default: auto-detect flagsync.yaml",
    )
    sp_fetch.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set file logging level (default: info)",
    )
    sp_fetch.add_argument(
        "--watch",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Keep the live stream open for this many seconds (needs background_sync)",
    )
    sp_fetch.set_defaults(func=_cmd_fetch)

    # ── keygen ──────────────────────────────────────────────────
    sp_keygen = subparsers.add_parser("keygen", help="Print a new base64 AES key")
    sp_keygen.add_argument(
        "--bits",
        type=int,
        default=128,
        choices=[128, 192, 256],
        help="Key size in bits (default: 128)",
    )
    sp_keygen.set_defaults(func=_cmd_keygen)

    # ── encrypt ─────────────────────────────────────────────────
    sp_encrypt = subparsers.add_parser(
        "encrypt",
        help="Encrypt a features JSON file into an encryptedFeatures payload",
    )
    sp_encrypt.add_argument("path", help="Path to a JSON file with the feature set")
    sp_encrypt.add_argument(
        "--key",
        type=str,
        default=None,
        help="Base64 AES key (or set FLAGSYNC_ENCRYPTION_KEY env var)",
    )
    sp_encrypt.set_defaults(func=_cmd_encrypt)

    return parser


def main(argv: Optional[list] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)
    else:
        args.func(args)
