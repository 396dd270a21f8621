"""Configuration loading and validation for flagsync."""

from flagsync.config.loader import expand_env_vars, load_client_config
from flagsync.config.schema import ClientConfig, CoordinatorConfig

__all__ = [
    "ClientConfig",
    "CoordinatorConfig",
    "expand_env_vars",
    "load_client_config",
]
