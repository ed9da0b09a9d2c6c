"""Database module for the usage ledger."""

from .models import ApiUsageLog, Base
from .session import create_engine, create_session_factory, normalize_database_url
from .usage_repository import SqlUsageStore

__all__ = [
    "ApiUsageLog",
    "Base",
    "SqlUsageStore",
    "create_engine",
    "create_session_factory",
    "normalize_database_url",
]
