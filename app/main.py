"""
Entrypoint used by the chat action layer to obtain the Zoho Projects bridge.
"""

from __future__ import annotations

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_projects_bridge
from app.services.bridge import ProjectsBridge


def create_bridge() -> ProjectsBridge:
    """Configure logging and return the process-wide bridge."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return get_projects_bridge()


__all__ = ["create_bridge"]
