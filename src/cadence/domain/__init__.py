# Domain Package
from .errors import (
    CadenceError,
    InvalidInput,
    ItemNotCurrent,
    NoItemsAvailable,
    PersistenceError,
    SessionNotActive,
    SessionStateError,
    UnknownItem,
)
from .models import (
    CardType,
    DueItem,
    Item,
    ProgressRecord,
    QualityCounts,
    QualityRating,
    ReviewRecord,
    ScheduleResult,
    SchedulingState,
    Session,
    SessionState,
    SessionSummary,
    SimpleQuality,
)
from .ports import ProgressRepository

__all__ = [
    "CadenceError",
    "InvalidInput",
    "ItemNotCurrent",
    "NoItemsAvailable",
    "PersistenceError",
    "SessionNotActive",
    "SessionStateError",
    "UnknownItem",
    "CardType",
    "DueItem",
    "Item",
    "ProgressRecord",
    "QualityCounts",
    "QualityRating",
    "ReviewRecord",
    "ScheduleResult",
    "SchedulingState",
    "Session",
    "SessionState",
    "SessionSummary",
    "SimpleQuality",
    "ProgressRepository",
]
