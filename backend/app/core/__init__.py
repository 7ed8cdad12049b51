"""Core module for configuration and utilities."""

from app.core.config import settings
from app.core.database import Base, Database

__all__ = [
    "settings",
    "Base",
    "Database",
]
