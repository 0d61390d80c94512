from datetime import datetime, timedelta, timezone

import pytest

from cadence.domain.models import Item, ProgressRecord
from cadence.infrastructure.adapters.memory import InMemoryProgressRepository

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

CADENCE_ENV_VARS = (
    "CADENCE_BACKEND",
    "CADENCE_DATABASE_PATH",
    "CADENCE_USER_ID",
    "CADENCE_SESSION_LIMIT",
    "CADENCE_DEFAULT_CARD_TYPE",
    "CADENCE_VERBOSE",
)


class FakeClock:
    """Controllable clock; each call returns the current time."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def items():
    return [
        Item(id="hola", word="hola", translation="hello", category="conversation"),
        Item(id="gracias", word="gracias", translation="thank you", category="conversation"),
        Item(id="pan", word="pan", translation="bread", category="food"),
        Item(id="agua", word="agua", translation="water", category="food"),
    ]


@pytest.fixture
def repo(items):
    return InMemoryProgressRepository(items)


@pytest.fixture
def make_progress():
    """Factory for ProgressRecords owned by user u1."""

    def _make(item_id: str, next_review_at: datetime, **kwargs) -> ProgressRecord:
        defaults = dict(user_id="u1", item_id=item_id, next_review_at=next_review_at)
        defaults.update(kwargs)
        return ProgressRecord(**defaults)

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and the database
    monkeypatch.setenv("HOME", str(home))
    for var in CADENCE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return home
