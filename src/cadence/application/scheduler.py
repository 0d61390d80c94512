"""
SM-2 scheduler.

Computes the next ease factor, interval and due date for one item from a
quality rating. This is a pure computation module with no I/O; every function
is deterministic for a given `now` and safe to call from any thread.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)),  floored at 1.3
"""

import math
from datetime import datetime, timedelta, timezone
from numbers import Real
from typing import Protocol

from cadence.domain.constants import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_INTERVAL,
    DEFAULT_REPETITIONS,
    FIRST_INTERVAL,
    LAPSE_INTERVAL,
    MIN_EASE_FACTOR,
    SECOND_INTERVAL,
)
from cadence.domain.errors import InvalidInput
from cadence.domain.models import (
    SIMPLE_QUALITY_MAP,
    QualityRating,
    ScheduleResult,
    SimpleQuality,
)

RatingInput = QualityRating | SimpleQuality | int | str


class SchedulingInput(Protocol):
    ease_factor: float
    interval: int
    repetitions: int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    """Round to the nearest whole number, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def to_quality_rating(value: RatingInput) -> QualityRating:
    """
    Map either caller contract onto the canonical five-level scale.

    Accepts a QualityRating, an int in 1..5, a SimpleQuality, or one of the
    strings "forgot", "remembered", "easy".
    """
    if isinstance(value, QualityRating):
        return value
    if isinstance(value, SimpleQuality):
        return SIMPLE_QUALITY_MAP[value]
    if isinstance(value, str):
        try:
            return SIMPLE_QUALITY_MAP[SimpleQuality(value.strip().lower())]
        except ValueError:
            raise InvalidInput(f"Unknown quality {value!r}") from None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"Rating must be an integer 1-5, got {value!r}")
    try:
        return QualityRating(value)
    except ValueError:
        raise InvalidInput(f"Rating must be between 1 and 5, got {value}") from None


def next_ease_factor(ease_factor: float, rating: QualityRating) -> float:
    miss = 5 - int(rating)
    updated = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    return max(updated, MIN_EASE_FACTOR)


def _validate_state(current: SchedulingInput) -> None:
    ef = current.ease_factor
    if isinstance(ef, bool) or not isinstance(ef, Real) or not math.isfinite(ef):
        raise InvalidInput(f"ease_factor must be a finite number, got {ef!r}")
    if ef < MIN_EASE_FACTOR:
        raise InvalidInput(f"ease_factor must be >= {MIN_EASE_FACTOR}, got {ef}")

    for name in ("interval", "repetitions"):
        v = getattr(current, name)
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidInput(f"{name} must be an integer, got {v!r}")
        if v < 0:
            raise InvalidInput(f"{name} must be >= 0, got {v}")


def compute_next(
    rating: RatingInput,
    current: SchedulingInput,
    now: datetime | None = None,
) -> ScheduleResult:
    """
    Schedule the next review of an item.

    Args:
        rating: Recall quality, in either caller contract.
        current: Anything exposing ease_factor, interval and repetitions
            (a ProgressRecord or SchedulingState).
        now: Reference time; defaults to the current UTC time.

    Returns:
        ScheduleResult with the updated SM-2 fields and next_review_at.

    Raises:
        InvalidInput: rating or state outside its contract.
    """
    quality = to_quality_rating(rating)
    _validate_state(current)
    now = as_utc(now or utcnow())

    if quality.is_lapse:
        repetitions = 0
        interval = LAPSE_INTERVAL
    else:
        repetitions = current.repetitions + 1
        if repetitions == 1:
            interval = FIRST_INTERVAL
        elif repetitions == 2:
            interval = SECOND_INTERVAL
        else:
            interval = round_half_up(current.interval * current.ease_factor)

    return ScheduleResult(
        ease_factor=next_ease_factor(current.ease_factor, quality),
        interval=interval,
        repetitions=repetitions,
        next_review_at=now + timedelta(days=interval),
    )


def initial_state(now: datetime | None = None) -> ScheduleResult:
    """SM-2 defaults for a new item. Due immediately."""
    return ScheduleResult(
        ease_factor=DEFAULT_EASE_FACTOR,
        interval=DEFAULT_INTERVAL,
        repetitions=DEFAULT_REPETITIONS,
        next_review_at=as_utc(now or utcnow()),
    )


def preview(
    current: SchedulingInput, now: datetime | None = None
) -> dict[QualityRating, ScheduleResult]:
    """What each rating would schedule, without saving anything."""
    now = as_utc(now or utcnow())
    return {q: compute_next(q, current, now) for q in QualityRating}


def is_due(next_review_at: datetime, now: datetime | None = None) -> bool:
    return as_utc(next_review_at) <= as_utc(now or utcnow())


def days_until_review(next_review_at: datetime, now: datetime | None = None) -> int:
    """
    Whole days until the next review, rounded up.

    Negative when the item is overdue.
    """
    delta = as_utc(next_review_at) - as_utc(now or utcnow())
    return math.ceil(delta.total_seconds() / 86400)
