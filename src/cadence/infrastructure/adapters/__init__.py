# Infrastructure Storage Adapters Package
from .memory import InMemoryProgressRepository
from .sqlite_store import SqliteProgressRepository

__all__ = ["InMemoryProgressRepository", "SqliteProgressRepository"]
