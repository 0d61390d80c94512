"""
Domain models for scheduling and review sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum

from .constants import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_INTERVAL,
    DEFAULT_REPETITIONS,
    PASSING_RATING,
)


class QualityRating(IntEnum):
    """Recall quality supplied by the caller after each review."""

    FORGOT = 1  # Complete blackout
    HARD = 2  # Incorrect, remembered after seeing the answer
    GOOD = 3  # Correct with serious difficulty
    EASY = 4  # Correct with hesitation
    PERFECT = 5  # Instant recall

    @property
    def is_lapse(self) -> bool:
        return self < PASSING_RATING

    @property
    def bucket(self) -> str:
        return self.name.lower()


class SimpleQuality(str, Enum):
    """Three-button caller contract mapped onto QualityRating."""

    FORGOT = "forgot"
    REMEMBERED = "remembered"
    EASY = "easy"


SIMPLE_QUALITY_MAP: dict[SimpleQuality, QualityRating] = {
    SimpleQuality.FORGOT: QualityRating.FORGOT,
    SimpleQuality.REMEMBERED: QualityRating.GOOD,
    SimpleQuality.EASY: QualityRating.PERFECT,
}


class CardType(str, Enum):
    """Known card-type tags. Any non-empty string is accepted on a review."""

    LEARNING = "learning"
    LISTENING = "listening"
    SPEAKING = "speaking"


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABANDONED)


@dataclass(frozen=True)
class Item:
    """
    A word/phrase pair owned by the content catalog.

    Attributes:
        id: Stable identifier.
        word: The word or phrase in the target language.
        translation: Translation in the learner's native language.
    """

    id: str
    word: str
    translation: str
    phonetic: str | None = None
    example_sentence: str | None = None
    example_translation: str | None = None
    category: str | None = None
    difficulty: str | None = None
    target_language: str | None = None
    native_language: str | None = None


@dataclass(frozen=True)
class SchedulingState:
    """The three SM-2 inputs the scheduler reads."""

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = DEFAULT_INTERVAL
    repetitions: int = DEFAULT_REPETITIONS


@dataclass(frozen=True)
class ScheduleResult:
    """Scheduler output for a single review."""

    ease_factor: float
    interval: int
    repetitions: int
    next_review_at: datetime


@dataclass(frozen=True)
class ProgressRecord:
    """
    Per-(user, item) scheduling state.

    Replaced wholesale after each review; never deleted.
    """

    user_id: str
    item_id: str
    next_review_at: datetime
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = DEFAULT_INTERVAL
    repetitions: int = DEFAULT_REPETITIONS
    total_reviews: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    last_reviewed_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def initial(cls, user_id: str, item_id: str, now: datetime) -> "ProgressRecord":
        """Defaults for an item the user has never reviewed (due immediately)."""
        return cls(user_id=user_id, item_id=item_id, next_review_at=now, created_at=now)

    def apply(
        self, result: ScheduleResult, rating: QualityRating, reviewed_at: datetime
    ) -> "ProgressRecord":
        """Return the record after a review scheduled as `result`."""
        correct = not rating.is_lapse
        return replace(
            self,
            ease_factor=result.ease_factor,
            interval=result.interval,
            repetitions=result.repetitions,
            next_review_at=result.next_review_at,
            total_reviews=self.total_reviews + 1,
            correct_count=self.correct_count + (1 if correct else 0),
            incorrect_count=self.incorrect_count + (0 if correct else 1),
            last_reviewed_at=reviewed_at,
        )


@dataclass(frozen=True)
class DueItem:
    """An item eligible for review, with its progress if it has any."""

    item_id: str
    progress: ProgressRecord | None = None
    item: Item | None = None

    @property
    def is_new(self) -> bool:
        return self.progress is None


@dataclass
class Session:
    """A bounded review run. Mutated only by its owning ReviewSession."""

    id: str
    user_id: str
    started_at: datetime
    ended_at: datetime | None = None
    items_reviewed: int = 0
    points_earned: int = 0
    total_time_seconds: int | None = None
    status: SessionState = SessionState.ACTIVE


@dataclass(frozen=True)
class ReviewRecord:
    """Append-only log entry for a single review."""

    id: str
    session_id: str
    item_id: str
    user_id: str
    rating: QualityRating
    time_spent_seconds: int
    card_type: str
    reviewed_at: datetime


@dataclass(frozen=True)
class QualityCounts:
    forgot: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0
    perfect: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "forgot": self.forgot,
            "hard": self.hard,
            "good": self.good,
            "easy": self.easy,
            "perfect": self.perfect,
        }


@dataclass(frozen=True)
class SessionSummary:
    """Terminal output of a session, consumed by a results display."""

    session_id: str
    items_reviewed: int
    points_earned: int
    time_spent_seconds: int
    accuracy: int  # Percentage (0-100)
    counts_by_quality: QualityCounts = field(default_factory=QualityCounts)
