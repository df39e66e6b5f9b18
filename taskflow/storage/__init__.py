"""Storage backends and the factory that picks one at start-up."""
from ..config import Settings
from .base import Storage
from .database import DatabaseStorage
from .memory import MemoryStorage

__all__ = ["DatabaseStorage", "MemoryStorage", "Storage", "create_storage"]


def create_storage(settings: Settings) -> Storage:
    """Instantiate the backend named by ``settings.storage_backend``."""

    if settings.storage_backend == "memory":
        return MemoryStorage()
    return DatabaseStorage.from_url(settings.database_url)
