"""User repository.

Lookup, creation and update of user accounts by their unique mobile number
or email address.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.models.user import User

# Fields a user may change on their own profile
UPDATABLE_FIELDS = frozenset({"name", "email", "age", "height", "weight", "gender"})


class DuplicateUserError(ValueError):
    """Raised when the mobile number or email is already registered."""

    pass


def _normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


class UserRepository:
    """Repository for User accounts."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session.

        Args:
            db: Async database session.
        """
        self.db = db

    async def get(self, user_id: uuid.UUID) -> User | None:
        return await self.db.get(User, user_id)

    async def find_by_identity(self, identity: str) -> User | None:
        """Find a user by mobile number or email address.

        Args:
            identity: Mobile number or email; surrounding whitespace is ignored
                and emails are matched case-insensitively.

        Returns:
            The matching user or None.
        """
        identity = identity.strip()
        if not identity:
            return None
        result = await self.db.execute(
            select(User).where(
                or_(User.mobile == identity, User.email == identity.lower())
            )
        )
        return result.scalars().first()

    async def create(
        self,
        *,
        name: str,
        mobile: str,
        password_hash: str,
        email: str | None = None,
        **profile: Any,
    ) -> User:
        """Create a new user.

        Raises:
            DuplicateUserError: If the mobile or email is already registered.
        """
        mobile = mobile.strip()
        email = _normalize_email(email)

        clauses = [User.mobile == mobile]
        if email:
            clauses.append(User.email == email)
        existing = await self.db.execute(select(User.id).where(or_(*clauses)))
        if existing.first() is not None:
            raise DuplicateUserError("User already exists")

        user = User(
            name=name.strip(),
            mobile=mobile,
            email=email,
            password_hash=password_hash,
            **{k: v for k, v in profile.items() if k in UPDATABLE_FIELDS},
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            await self.db.rollback()
            raise DuplicateUserError("User already exists") from e
        await self.db.refresh(user)
        return user

    async def update(self, user: User, **fields: Any) -> User:
        """Update profile fields on ``user``; unknown fields are ignored.

        Raises:
            DuplicateUserError: If the new email belongs to another user.
        """
        if "email" in fields:
            fields["email"] = _normalize_email(fields["email"])
            if fields["email"]:
                result = await self.db.execute(
                    select(User.id).where(User.email == fields["email"], User.id != user.id)
                )
                if result.first() is not None:
                    raise DuplicateUserError("Email already registered")

        for key, value in fields.items():
            if key in UPDATABLE_FIELDS:
                setattr(user, key, value)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def list_all(self) -> Sequence[User]:
        """Return every user, newest first."""
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return result.scalars().all()
