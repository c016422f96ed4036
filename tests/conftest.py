import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

# Point the app at a throwaway database before backend.config is imported.
os.environ.setdefault(
    "VOCAB_READER_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp()) / 'test.db'}",
)

import pytest  # noqa: E402

from backend.storage.memory import InMemoryStorage  # noqa: E402


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 10, 12, 0)


@pytest.fixture
def clock(now: datetime) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()
