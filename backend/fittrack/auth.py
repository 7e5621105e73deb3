"""Authentication dependencies: JWT bearer tokens and the admin password gate."""

import hmac
import uuid
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.config import settings
from fittrack.database import get_db
from fittrack.models.user import User
from fittrack.repositories.user import UserRepository
from fittrack.security import InvalidTokenError, TokenIssuer

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer()


async def verify_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> dict[str, Any]:
    """Validate a bearer token and return its claims.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token, authorization denied",
        )
    try:
        return issuer.verify(credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
        )


async def get_current_user(
    claims: dict[str, Any] = Depends(verify_bearer_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the user named by the token's ``sub`` claim.

    Raises:
        HTTPException: 401 if the claim is malformed or the user no longer exists.
    """
    try:
        user_id = uuid.UUID(str(claims.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
        )
    user = await UserRepository(db).get(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
        )
    return user


async def verify_admin_password(
    x_admin_password: str | None = Header(default=None),
) -> None:
    """Require the ``x-admin-password`` header to match ``settings.admin_password``.

    An empty configured password disables admin access entirely.
    """
    expected = settings.admin_password
    if (
        not expected
        or not x_admin_password
        or not hmac.compare_digest(x_admin_password.encode("utf-8"), expected.encode("utf-8"))
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin password",
        )
