"""Configuration module for pairledger."""

from pairledger.config.logging import configure_logging
from pairledger.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]
