from .migrations import MigrationRunner
from .sqlite_store import SqliteEventStore

__all__ = [
    "MigrationRunner",
    "SqliteEventStore",
]
