"""Storage abstractions and built-in backends."""

from browser_control.storage.database import Database
from browser_control.storage.database_factory import DatabaseConfigFactory, DatabaseFactory
from browser_control.storage.relational_database import (
    RecordNotFoundError,
    RelationalDatabase,
    StorageError,
)
from browser_control.storage.session_records import SessionRecord, SessionRecordStore
from browser_control.storage.site_configs import SiteConfig, SiteConfigStore

__all__ = [
    "Database",
    "DatabaseConfigFactory",
    "DatabaseFactory",
    "RecordNotFoundError",
    "RelationalDatabase",
    "SessionRecord",
    "SessionRecordStore",
    "SiteConfig",
    "SiteConfigStore",
    "StorageError",
]
