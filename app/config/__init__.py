"""Configuration module"""
from .settings import Settings, get_settings, settings, VALIDATOR_PLACEHOLDER_URL

__all__ = ["Settings", "get_settings", "settings", "VALIDATOR_PLACEHOLDER_URL"]
