"""
Points policy for review sessions.

Point values are a business rule, not part of scheduling. The session
manager takes any callable `(rating, card_type) -> int`.
"""

from collections.abc import Callable, Mapping

from cadence.domain.constants import POINTS_PER_CARD_TYPE
from cadence.domain.errors import InvalidInput
from cadence.domain.models import QualityRating

PointsPolicy = Callable[[QualityRating, str], int]


class CardTypePoints:
    """
    Flat award per card type, regardless of rating.

    Unknown card types earn `fallback` points.
    """

    def __init__(self, table: Mapping[str, int] | None = None, fallback: int = 0):
        self._table = dict(POINTS_PER_CARD_TYPE if table is None else table)
        self._fallback = fallback

    def __call__(self, rating: QualityRating, card_type: str) -> int:
        return self._table.get(card_type, self._fallback)


def no_points(rating: QualityRating, card_type: str) -> int:
    return 0


def award_points(policy: PointsPolicy, rating: QualityRating, card_type: str) -> int:
    points = policy(rating, card_type)
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise InvalidInput(f"Points policy returned {points!r}; expected a non-negative int")
    return points
