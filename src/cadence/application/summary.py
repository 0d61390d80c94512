"""
Session summary aggregation.

Pure function over a session and its review log.
"""

from collections import Counter

from cadence.domain.constants import PASSING_RATING
from cadence.domain.models import QualityCounts, ReviewRecord, Session, SessionSummary

from .scheduler import round_half_up


def count_by_quality(reviews: list[ReviewRecord]) -> QualityCounts:
    counts = Counter(r.rating.bucket for r in reviews)
    return QualityCounts(**{bucket: counts.get(bucket, 0) for bucket in QualityCounts().as_dict()})


def accuracy_percent(reviews: list[ReviewRecord]) -> int:
    """Share of reviews rated good or better, as a rounded percentage."""
    if not reviews:
        return 0
    correct = sum(1 for r in reviews if r.rating >= PASSING_RATING)
    return round_half_up(correct / len(reviews) * 100)


def summarize(session: Session, reviews: list[ReviewRecord]) -> SessionSummary:
    """
    Aggregate the reviews logged under `session`.

    Reviews belonging to other sessions are ignored.
    """
    own = [r for r in reviews if r.session_id == session.id]
    return SessionSummary(
        session_id=session.id,
        items_reviewed=session.items_reviewed,
        points_earned=session.points_earned,
        time_spent_seconds=session.total_time_seconds or 0,
        accuracy=accuracy_percent(own),
        counts_by_quality=count_by_quality(own),
    )
