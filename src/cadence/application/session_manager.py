"""
Review session orchestration.

A ReviewSession walks a fixed, ordered batch of due items:

    IDLE --start--> ACTIVE --end_session / queue exhausted--> COMPLETED
                      |
                      +--abandon--> ABANDONED

Each submitted review is scheduled by the SM-2 scheduler and persisted through
the ProgressRepository port as one atomic unit before the cursor advances.
Mutating calls on one session are serialized by a per-session asyncio.Lock.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from cadence.domain.constants import DEFAULT_CARD_TYPE, DEFAULT_SESSION_LIMIT
from cadence.domain.errors import (
    InvalidInput,
    ItemNotCurrent,
    NoItemsAvailable,
    SessionNotActive,
    SessionStateError,
    UnknownItem,
)
from cadence.domain.models import (
    CardType,
    DueItem,
    ProgressRecord,
    QualityRating,
    ReviewRecord,
    ScheduleResult,
    Session,
    SessionState,
    SessionSummary,
)
from cadence.domain.ports import ProgressRepository

from . import scheduler
from .id_service import generate_review_id, generate_session_id
from .points import CardTypePoints, PointsPolicy, award_points
from .summary import summarize

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of a successful submit_review."""

    progress: ProgressRecord
    review: ReviewRecord
    schedule: ScheduleResult
    points: int
    summary: SessionSummary | None = None  # Set when this review finished the batch


@dataclass(frozen=True)
class _PendingAttempt:
    # Reused when a failed write is retried with identical arguments
    item_id: str
    rating: QualityRating
    time_spent_seconds: int
    card_type: str
    review_id: str
    reviewed_at: datetime

    def matches(
        self, item_id: str, rating: QualityRating, time_spent_seconds: int, card_type: str
    ) -> bool:
        return (self.item_id, self.rating, self.time_spent_seconds, self.card_type) == (
            item_id,
            rating,
            time_spent_seconds,
            card_type,
        )


def order_due_items(entries: list[DueItem], now: datetime, limit: int) -> list[DueItem]:
    """
    Keep due entries and order them for presentation.

    Never-reviewed items come first (in the order given), then reviewed items
    by ascending next_review_at. Duplicate item ids keep their first entry.
    """
    seen: set[str] = set()
    due: list[DueItem] = []
    for entry in entries:
        if entry.item_id in seen:
            continue
        if entry.progress is not None and not scheduler.is_due(entry.progress.next_review_at, now):
            continue
        seen.add(entry.item_id)
        due.append(entry)

    new = [e for e in due if e.progress is None]
    reviewed = sorted(
        (e for e in due if e.progress is not None),
        key=lambda e: e.progress.next_review_at,
    )
    return (new + reviewed)[:limit]


class ReviewSession:
    """
    One bounded review run for one user.

    Created IDLE; `start` selects the batch and activates it. Not reusable
    once it reaches a terminal state.
    """

    def __init__(
        self,
        repository: ProgressRepository,
        user_id: str,
        points_policy: PointsPolicy | None = None,
        clock: Clock | None = None,
    ):
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidInput("user_id must be a non-empty string")

        self._repo = repository
        self.user_id = user_id
        self._points = points_policy or CardTypePoints()
        self._clock = clock or scheduler.utcnow
        self._lock = asyncio.Lock()

        self._state = SessionState.IDLE
        self._batch: list[DueItem] = []
        self._cursor = 0
        self._reviews: list[ReviewRecord] = []
        self._pending: _PendingAttempt | None = None
        self._summary: SessionSummary | None = None
        self.session: Session | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self.session.id if self.session else None

    @property
    def current_item(self) -> DueItem | None:
        if self._state is not SessionState.ACTIVE or self._cursor >= len(self._batch):
            return None
        return self._batch[self._cursor]

    @property
    def remaining(self) -> list[str]:
        return [e.item_id for e in self._batch[self._cursor :]]

    @property
    def total(self) -> int:
        return len(self._batch)

    @property
    def position(self) -> int:
        """Number of items already reviewed or skipped."""
        return self._cursor

    @property
    def progress_percentage(self) -> float:
        if not self._batch:
            return 0.0
        return self._cursor / len(self._batch) * 100

    @property
    def reviews(self) -> tuple[ReviewRecord, ...]:
        return tuple(self._reviews)

    @property
    def summary(self) -> SessionSummary | None:
        return self._summary

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, limit: int = DEFAULT_SESSION_LIMIT) -> "ReviewSession":
        """
        Select up to `limit` due items and activate the session.

        Raises:
            InvalidInput: limit is not a positive integer.
            SessionStateError: the session was already started.
            NoItemsAvailable: nothing is due.
            PersistenceError: the new session could not be saved.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidInput(f"limit must be a positive integer, got {limit!r}")

        async with self._lock:
            if self._state is not SessionState.IDLE:
                raise SessionStateError(f"Session already {self._state.value}")

            now = scheduler.as_utc(self._clock())
            entries = await self._repo.list_due_items(self.user_id, now, limit)
            batch = order_due_items(entries, now, limit)
            if not batch:
                logger.info(f"Nothing due for user {self.user_id}")
                raise NoItemsAvailable(self.user_id)

            session = Session(id=generate_session_id(), user_id=self.user_id, started_at=now)
            await self._repo.save_session(session)

            self.session = session
            self._batch = batch
            self._state = SessionState.ACTIVE
            new_count = sum(1 for e in batch if e.is_new)
            logger.info(
                f"Session {session.id} started: {len(batch)} items ({new_count} new) "
                f"for user {self.user_id}"
            )
            return self

    async def submit_review(
        self,
        item_id: str,
        rating: scheduler.RatingInput,
        time_spent_seconds: int = 0,
        card_type: CardType | str = DEFAULT_CARD_TYPE,
    ) -> ReviewOutcome:
        """
        Record a review of the current item and advance to the next one.

        Nothing in memory changes unless the repository confirms the write, so
        a call that raised PersistenceError can simply be repeated. A repeat with
        identical arguments reuses the review id and timestamp; any changed
        argument starts a fresh attempt.

        Raises:
            SessionNotActive, UnknownItem, ItemNotCurrent, InvalidInput,
            PersistenceError.
        """
        quality = scheduler.to_quality_rating(rating)
        if (
            isinstance(time_spent_seconds, bool)
            or not isinstance(time_spent_seconds, int)
            or time_spent_seconds < 0
        ):
            raise InvalidInput(
                f"time_spent_seconds must be a non-negative integer, got {time_spent_seconds!r}"
            )
        card_type = _card_type_tag(card_type)

        async with self._lock:
            entry = self._require_head(item_id)
            attempt = self._attempt_for(item_id, quality, time_spent_seconds, card_type)

            current = await self._repo.load_progress(self.user_id, item_id)
            if current is None:
                current = ProgressRecord.initial(self.user_id, item_id, attempt.reviewed_at)

            schedule = scheduler.compute_next(quality, current, now=attempt.reviewed_at)
            progress = current.apply(schedule, quality, attempt.reviewed_at)
            points = award_points(self._points, quality, card_type)
            review = ReviewRecord(
                id=attempt.review_id,
                session_id=self.session.id,
                item_id=item_id,
                user_id=self.user_id,
                rating=quality,
                time_spent_seconds=time_spent_seconds,
                card_type=card_type,
                reviewed_at=attempt.reviewed_at,
            )

            updated = replace(
                self.session,
                items_reviewed=self.session.items_reviewed + 1,
                points_earned=self.session.points_earned + points,
            )
            finishes = self._cursor + 1 >= len(self._batch)
            if finishes:
                updated = self._finalized(updated, SessionState.COMPLETED)

            try:
                await self._repo.record_review(progress, review, updated)
            except Exception:
                logger.warning(
                    f"Review of {item_id} in {self.session.id} not saved; cursor kept"
                )
                raise

            self._pending = None
            self.session = updated
            self._reviews.append(review)
            self._cursor += 1
            logger.debug(
                f"Reviewed {entry.item_id} as {quality.name} (+{points} pts): "
                f"interval={schedule.interval}d ef={schedule.ease_factor:.2f}"
            )

            summary = None
            if finishes:
                summary = self._close(SessionState.COMPLETED)

            return ReviewOutcome(
                progress=progress,
                review=review,
                schedule=schedule,
                points=points,
                summary=summary,
            )

    async def skip_card(self, item_id: str) -> None:
        """
        Drop the current item from the batch without reviewing it.

        No progress or review is written and itemsReviewed is unchanged. If this
        empties the queue, the session completes.
        """
        async with self._lock:
            self._require_head(item_id)

            if self._cursor + 1 >= len(self._batch):
                finalized = self._finalized(self.session, SessionState.COMPLETED)
                await self._repo.save_session(finalized)
                self.session = finalized
                self._cursor += 1
                self._pending = None
                self._close(SessionState.COMPLETED)
            else:
                self._cursor += 1
                self._pending = None
            logger.debug(f"Skipped {item_id} in {self.session.id}")

    async def end_session(self) -> SessionSummary:
        """
        Complete the session and return its summary.

        Idempotent: a completed session returns the summary it already built.

        Raises:
            SessionNotActive: the session is IDLE or ABANDONED.
            PersistenceError: the final session record could not be saved.
        """
        async with self._lock:
            if self._state is SessionState.COMPLETED:
                return self._summary
            if self._state is not SessionState.ACTIVE:
                raise SessionNotActive(f"Cannot end a session that is {self._state.value}")

            finalized = self._finalized(self.session, SessionState.COMPLETED)
            await self._repo.save_session(finalized)
            self.session = finalized
            return self._close(SessionState.COMPLETED)

    async def abandon(self) -> None:
        """Tear the session down without completing it."""
        async with self._lock:
            if self._state is SessionState.ABANDONED:
                return
            if self._state is not SessionState.ACTIVE:
                raise SessionNotActive(f"Cannot abandon a session that is {self._state.value}")

            finalized = self._finalized(self.session, SessionState.ABANDONED)
            await self._repo.save_session(finalized)
            self.session = finalized
            self._close(SessionState.ABANDONED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_head(self, item_id: str) -> DueItem:
        if self._state is not SessionState.ACTIVE:
            raise SessionNotActive(f"Session is {self._state.value}")

        head = self._batch[self._cursor]
        if head.item_id == item_id:
            return head
        if any(e.item_id == item_id for e in self._batch[self._cursor + 1 :]):
            raise ItemNotCurrent(item_id, head.item_id)
        raise UnknownItem(item_id)

    def _attempt_for(
        self, item_id: str, rating: QualityRating, time_spent_seconds: int, card_type: str
    ) -> _PendingAttempt:
        pending = self._pending
        if pending and pending.matches(item_id, rating, time_spent_seconds, card_type):
            return pending
        self._pending = _PendingAttempt(
            item_id=item_id,
            rating=rating,
            time_spent_seconds=time_spent_seconds,
            card_type=card_type,
            review_id=generate_review_id(),
            reviewed_at=scheduler.as_utc(self._clock()),
        )
        return self._pending

    def _finalized(self, session: Session, status: SessionState) -> Session:
        ended_at = scheduler.as_utc(self._clock())
        elapsed = int((ended_at - session.started_at).total_seconds())
        return replace(
            session,
            ended_at=ended_at,
            total_time_seconds=max(elapsed, 0),
            status=status,
        )

    def _close(self, state: SessionState) -> SessionSummary | None:
        self._state = state
        if state is SessionState.COMPLETED:
            self._summary = summarize(self.session, self._reviews)
            logger.info(
                f"Session {self.session.id} completed: {self._summary.items_reviewed} reviewed, "
                f"{self._summary.points_earned} pts, {self._summary.accuracy}% accuracy"
            )
        else:
            logger.info(
                f"Session {self.session.id} abandoned after "
                f"{self.session.items_reviewed}/{len(self._batch)} items"
            )
        return self._summary


def _card_type_tag(card_type: CardType | str) -> str:
    if isinstance(card_type, CardType):
        return card_type.value
    if not isinstance(card_type, str) or not card_type.strip():
        raise InvalidInput(f"card_type must be a non-empty string, got {card_type!r}")
    return card_type.strip()


class SessionManager:
    """
    Entry point for collaborators: starts sessions and answers read-only
    scheduling questions.

    Depends on the ProgressRepository abstraction; the caller owns the
    repository's lifecycle.
    """

    def __init__(
        self,
        repository: ProgressRepository,
        points_policy: PointsPolicy | None = None,
        clock: Clock | None = None,
    ):
        """
        Args:
            repository: Storage port for progress, reviews and sessions.
            points_policy: Callable (rating, card_type) -> int; defaults to
                flat points per card type.
            clock: Returns the current time; defaults to UTC now.
        """
        self._repo = repository
        self._points = points_policy or CardTypePoints()
        self._clock = clock or scheduler.utcnow

    async def start_session(
        self, user_id: str, limit: int = DEFAULT_SESSION_LIMIT
    ) -> ReviewSession:
        """
        Start a review session over the user's due items.

        Raises:
            NoItemsAvailable: nothing is due; show a "nothing due" state.
        """
        session = ReviewSession(
            self._repo, user_id, points_policy=self._points, clock=self._clock
        )
        return await session.start(limit)

    async def preview(self, user_id: str, item_id: str) -> dict[QualityRating, ScheduleResult]:
        """What each rating would schedule for the item right now."""
        now = scheduler.as_utc(self._clock())
        current = await self._repo.load_progress(user_id, item_id)
        if current is None:
            current = ProgressRecord.initial(user_id, item_id, now)
        return scheduler.preview(current, now)

    async def summarize_session(self, session_id: str) -> SessionSummary:
        """Rebuild a stored session's summary from its review log."""
        session = await self._repo.load_session(session_id)
        if session is None:
            raise InvalidInput(f"Unknown session {session_id!r}")
        reviews = await self._repo.list_session_reviews(session_id)
        return summarize(session, reviews)
