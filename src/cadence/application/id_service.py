"""Stable identifiers for sessions and reviews."""

from ulid import ULID

from cadence.domain.constants import REVIEW_ID_PREFIX, SESSION_ID_PREFIX


def generate_session_id() -> str:
    """Generate a session ID using ULID (sortable by creation time)."""
    return f"{SESSION_ID_PREFIX}{ULID()}"


def generate_review_id() -> str:
    return f"{REVIEW_ID_PREFIX}{ULID()}"
