"""SQLAlchemy models."""

from fittrack.models.user import User

__all__ = [
    "User",
]
