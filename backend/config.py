from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Vocab Reader"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'vocab_reader.db'}"
    new_cards_per_day: int = 20
    reviews_per_day: int = 100
    learn_ahead: bool = False
    quiz_bidirectional: bool = True
    forecast_days: int = 30
    stats_time_range_days: int = 30
    debug: bool = False

    model_config = {"env_prefix": "VOCAB_READER_", "env_file": ".env"}


settings = Settings()
