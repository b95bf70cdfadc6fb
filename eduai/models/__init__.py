"""Database models."""
from eduai.models.user import User
from eduai.models.topic import Topic

__all__ = [
    "User",
    "Topic",
]
