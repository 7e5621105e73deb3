"""Account routes: registration, login and the signed-in user's profile."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.auth import get_current_user, get_token_issuer
from fittrack.database import get_db
from fittrack.models.user import User
from fittrack.repositories.user import DuplicateUserError, UserRepository
from fittrack.schemas.user import (
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
    UserProfile,
    UserSummary,
)
from fittrack.security import TokenIssuer, password_hasher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> RegisterResponse:
    """Create an account and return a token for it.

    Raises:
        HTTPException: 400 if name, mobile or password is missing, 409 if the
            mobile or email is already registered.
    """
    if _blank(request.name) or _blank(request.mobile) or not request.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields",
        )

    repo = UserRepository(db)
    try:
        user = await repo.create(
            name=request.name,
            mobile=request.mobile,
            email=request.email,
            password_hash=password_hasher.hash(request.password),
            age=request.age,
            height=request.height,
            weight=request.weight,
            gender=request.gender,
        )
    except DuplicateUserError:
        logger.info("Registration rejected: duplicate mobile or email")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    token = issuer.sign({"sub": str(user.id), "mobile": user.mobile})
    return RegisterResponse(
        message="User registered",
        user=UserSummary.model_validate(user),
        token=token,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> LoginResponse:
    """Authenticate by mobile (or email) and password.

    Raises:
        HTTPException: 400 if credentials are missing, 401 if they do not match.
    """
    identity = request.mobile if not _blank(request.mobile) else request.email
    if _blank(identity) or not request.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Mobile and password are required.",
        )

    user = await UserRepository(db).find_by_identity(identity)
    if user is None or not password_hasher.compare(request.password, user.password_hash):
        logger.info("Login failed for identity ending %s", identity.strip()[-4:])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid mobile or password.",
        )

    token = issuer.sign({"sub": str(user.id), "mobile": user.mobile})
    return LoginResponse(
        message="Login successful",
        token=token,
        user=UserProfile.model_validate(user),
    )


@router.get("/users/me", response_model=UserProfile)
async def get_me(user: User = Depends(get_current_user)) -> UserProfile:
    """Return the signed-in user's profile."""
    return UserProfile.model_validate(user)


@router.patch("/users/me", response_model=UserProfile)
async def update_me(
    update: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    """Update the signed-in user's profile fields.

    Raises:
        HTTPException: 409 if the new email belongs to another account.
    """
    fields = update.model_dump(exclude_unset=True)
    try:
        user = await UserRepository(db).update(user, **fields)
    except DuplicateUserError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )
    return UserProfile.model_validate(user)
