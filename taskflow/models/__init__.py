"""SQLAlchemy models exposed by the backend."""
from .base import Base
from .task import Task
from .user import User

__all__ = ["Base", "Task", "User"]
