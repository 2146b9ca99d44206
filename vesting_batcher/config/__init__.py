"""
Configuration management for the vesting batcher.

Loads settings from environment variables and the project .env file.
Exposes a single source of truth for run parameters and secrets.
"""

from vesting_batcher.config.settings import VestingConfig, get_settings  # noqa: F401

__all__ = ["VestingConfig", "get_settings"]
