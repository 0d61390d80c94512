"""
Storage Factory
Centralizes the logic for selecting the ProgressRepository adapter.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from cadence.application.config import AppConfig
from cadence.domain.ports import ProgressRepository
from cadence.infrastructure.adapters.memory import InMemoryProgressRepository
from cadence.infrastructure.adapters.sqlite_store import SqliteProgressRepository


def get_progress_repository(config: AppConfig) -> ProgressRepository:
    """
    Returns the ProgressRepository implementation named by config.backend.
    The SQLite adapter is returned unopened; the caller owns its lifecycle.
    """
    if config.backend == "memory":
        return InMemoryProgressRepository()
    return SqliteProgressRepository(config.database_path)


@contextmanager
def open_repository(config: AppConfig) -> Iterator[ProgressRepository]:
    repo = get_progress_repository(config)
    if isinstance(repo, SqliteProgressRepository):
        with repo:
            yield repo
    else:
        yield repo
