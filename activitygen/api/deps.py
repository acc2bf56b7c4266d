from functools import lru_cache

from ..generation.ports import ActivityLog
from ..infrastructure.db import PostgresActivityLog
from ..infrastructure.memory import InMemoryActivityLog
from ..infrastructure.registry import InMemoryRegistry
from ..shared.settings import settings


@lru_cache(maxsize=1)
def get_activity_log() -> ActivityLog:
    if settings.storage_backend == "postgres":
        return PostgresActivityLog()
    return InMemoryActivityLog()


@lru_cache(maxsize=1)
def get_registry() -> InMemoryRegistry:
    return InMemoryRegistry.from_settings()
