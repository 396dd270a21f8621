"""Logging setup and console output."""
