"""Core app configuration, database, errors and security."""

from cugino.core.config import get_settings, settings
from cugino.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
