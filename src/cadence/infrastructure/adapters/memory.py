"""
In-memory Progress Repository.

Implements ProgressRepository with plain dicts. Useful for tests, previews and
embedding the core where the caller handles durability itself.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from cadence.domain.errors import PersistenceError
from cadence.domain.models import DueItem, Item, ProgressRecord, ReviewRecord, Session
from cadence.domain.ports import ProgressRepository

logger = logging.getLogger(__name__)


class InMemoryProgressRepository(ProgressRepository):
    """
    Dict-backed store.

    `fail_writes(n)` makes the next n write calls raise PersistenceError
    without changing anything, to exercise retry paths.
    """

    def __init__(self, items: Iterable[Item] | None = None):
        self._items: dict[str, Item] = {}
        self._progress: dict[tuple[str, str], ProgressRecord] = {}
        self._reviews: list[ReviewRecord] = []
        self._review_ids: set[str] = set()
        self._sessions: dict[str, Session] = {}
        self._failures_left = 0
        self._failure_message = "Simulated storage failure"

        for item in items or []:
            self._items.setdefault(item.id, item)

    # --- test hooks ---

    def fail_writes(self, count: int = 1, message: str | None = None) -> None:
        self._failures_left = count
        if message:
            self._failure_message = message

    def _check_write(self) -> None:
        if self._failures_left > 0:
            self._failures_left -= 1
            raise PersistenceError(self._failure_message)

    @property
    def reviews(self) -> list[ReviewRecord]:
        return list(self._reviews)

    # --- ProgressRepository ---

    async def load_progress(self, user_id: str, item_id: str) -> ProgressRecord | None:
        return self._progress.get((user_id, item_id))

    async def save_progress(self, record: ProgressRecord) -> None:
        self._check_write()
        self._progress[(record.user_id, record.item_id)] = record

    async def append_review(self, review: ReviewRecord) -> None:
        self._check_write()
        if review.id in self._review_ids:
            return
        self._review_ids.add(review.id)
        self._reviews.append(review)

    async def save_session(self, session: Session) -> None:
        self._check_write()
        self._sessions[session.id] = replace(session)

    async def record_review(
        self, progress: ProgressRecord, review: ReviewRecord, session: Session
    ) -> None:
        # Single check up front: either every write lands or none does.
        self._check_write()
        if review.id in self._review_ids:
            logger.debug(f"Review {review.id} already recorded; skipping")
            return
        self._progress[(progress.user_id, progress.item_id)] = progress
        self._review_ids.add(review.id)
        self._reviews.append(review)
        self._sessions[session.id] = replace(session)

    async def list_due_items(self, user_id: str, now: datetime, limit: int) -> list[DueItem]:
        new: list[DueItem] = []
        due: list[DueItem] = []
        for item in self._items.values():
            progress = self._progress.get((user_id, item.id))
            if progress is None:
                new.append(DueItem(item_id=item.id, item=item))
            elif progress.next_review_at <= now:
                due.append(DueItem(item_id=item.id, progress=progress, item=item))

        due.sort(key=lambda e: e.progress.next_review_at)
        return (new + due)[:limit]

    async def get_item(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    async def add_items(self, items: Iterable[Item]) -> int:
        added = 0
        for item in items:
            if item.id not in self._items:
                self._items[item.id] = item
                added += 1
        return added

    async def load_session(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        return replace(session) if session else None

    async def list_session_reviews(self, session_id: str) -> list[ReviewRecord]:
        return [r for r in self._reviews if r.session_id == session_id]
