"""
Dependency utilities for injecting configuration into the access layer.
"""

from functools import lru_cache

from app.core.config import AppSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """Return application settings shared by every factory."""
    return _settings_singleton()


__all__ = ["get_app_settings"]
