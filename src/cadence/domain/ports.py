"""
Ports (interfaces) for scheduling persistence.

These define the contract that infrastructure adapters must implement.
The session manager depends on this abstraction, never on a concrete store.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from .models import DueItem, Item, ProgressRecord, ReviewRecord, Session


class ProgressRepository(ABC):
    """
    Port for loading and saving scheduling state.

    Write methods raise PersistenceError on storage failure.

    Implementations:
        - InMemoryProgressRepository: dict-backed, for tests and embedding.
        - SqliteProgressRepository: local SQLite database.
    """

    @abstractmethod
    async def load_progress(self, user_id: str, item_id: str) -> ProgressRecord | None:
        """Return the user's record for the item, or None if never reviewed."""
        pass

    @abstractmethod
    async def save_progress(self, record: ProgressRecord) -> None:
        pass

    @abstractmethod
    async def append_review(self, review: ReviewRecord) -> None:
        pass

    @abstractmethod
    async def save_session(self, session: Session) -> None:
        pass

    @abstractmethod
    async def list_due_items(self, user_id: str, now: datetime, limit: int) -> list[DueItem]:
        """
        List items due for the user at `now`.

        Args:
            user_id: The learner.
            now: Reference time; records with next_review_at <= now are due.
            limit: Maximum number of entries to return.

        Returns:
            Never-reviewed items first, then reviewed items by ascending
            next_review_at.
        """
        pass

    @abstractmethod
    async def record_review(
        self, progress: ProgressRecord, review: ReviewRecord, session: Session
    ) -> None:
        """
        Persist the outcome of one review as a single atomic unit.

        Either all three writes land or none does. A review whose id is
        already stored is treated as applied and nothing is written.
        """
        pass

    @abstractmethod
    async def get_item(self, item_id: str) -> Item | None:
        pass

    @abstractmethod
    async def add_items(self, items: Iterable[Item]) -> int:
        """Add catalog items, skipping ids that already exist. Returns the count added."""
        pass

    @abstractmethod
    async def load_session(self, session_id: str) -> Session | None:
        pass

    @abstractmethod
    async def list_session_reviews(self, session_id: str) -> list[ReviewRecord]:
        """Reviews logged under the session, oldest first."""
        pass
