"""Centralized constants for the cadence scheduling core.

All magic numbers and defaults live here so every layer imports from a
single source of truth.
"""

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
DEFAULT_INTERVAL = 0
DEFAULT_REPETITIONS = 0
FIRST_INTERVAL = 1  # days after the first successful review
SECOND_INTERVAL = 6  # days after the second successful review
LAPSE_INTERVAL = 1
PASSING_RATING = 3  # ratings below this are lapses

# ---------- Sessions ----------
DEFAULT_SESSION_LIMIT = 10
DEFAULT_CARD_TYPE = "learning"

# Points awarded per card type in the learning -> listening -> speaking cycle
POINTS_PER_CARD_TYPE = {
    "learning": 10,
    "listening": 15,
    "speaking": 20,
}

# ---------- Identifiers ----------
SESSION_ID_PREFIX = "session_"
REVIEW_ID_PREFIX = "review_"
