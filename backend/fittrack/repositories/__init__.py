"""Repository layer for database access."""

from fittrack.repositories.user import DuplicateUserError, UserRepository

__all__ = [
    "DuplicateUserError",
    "UserRepository",
]
