# Application Package
from .scheduler import compute_next, days_until_review, is_due, preview, to_quality_rating
from .session_manager import ReviewOutcome, ReviewSession, SessionManager
from .summary import summarize

__all__ = [
    "compute_next",
    "days_until_review",
    "is_due",
    "preview",
    "to_quality_rating",
    "ReviewOutcome",
    "ReviewSession",
    "SessionManager",
    "summarize",
]
