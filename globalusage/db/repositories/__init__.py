"""Repository package for database access."""

from .base import UsageRepository
from .usage import SqliteUsageRepository

__all__ = [
    "UsageRepository",
    "SqliteUsageRepository",
]
