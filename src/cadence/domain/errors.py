"""
Error taxonomy for the scheduling core.

Callers distinguish programming errors (InvalidInput, SessionStateError,
UnknownItem), the normal "nothing due" signal (NoItemsAvailable) and
transient storage failures (PersistenceError).
"""


class CadenceError(Exception):
    """Base class for every error raised by cadence."""

    retryable = False


class InvalidInput(CadenceError, ValueError):
    """An argument is outside its contract (rating, ease factor, limit, ...)."""


class NoItemsAvailable(CadenceError):
    """Nothing is due for review. Not a fault: present a "nothing due" state."""

    def __init__(self, user_id: str):
        super().__init__(f"No items due for review for user {user_id!r}")
        self.user_id = user_id


class SessionStateError(CadenceError):
    """An operation was attempted in a state that does not allow it."""


class SessionNotActive(SessionStateError):
    """The session is not in the ACTIVE state."""


class UnknownItem(CadenceError):
    """The item is not part of the session's remaining queue."""

    def __init__(self, item_id: str, message: str | None = None):
        super().__init__(message or f"Item {item_id!r} is not in the remaining queue")
        self.item_id = item_id


class ItemNotCurrent(UnknownItem):
    """The item is queued but is not the current head of the queue."""

    def __init__(self, item_id: str, current_id: str):
        super().__init__(
            item_id,
            f"Item {item_id!r} is not the current item (expected {current_id!r})",
        )
        self.current_id = current_id


class PersistenceError(CadenceError):
    """A storage write failed. Safe to retry the same call."""

    retryable = True
