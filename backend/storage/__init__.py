"""Storage backends for learning states, session history and quiz settings."""

from backend.storage.base import Storage
from backend.storage.memory import InMemoryStorage
from backend.storage.sql import SqlStorage

__all__ = ["InMemoryStorage", "SqlStorage", "Storage"]
