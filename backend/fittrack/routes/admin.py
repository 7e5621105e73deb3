"""Admin routes guarded by the ``x-admin-password`` header."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.auth import verify_admin_password
from fittrack.database import get_db
from fittrack.repositories.user import UserRepository
from fittrack.schemas.user import AdminUserList, UserProfile

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_password)],
)


@router.get("/users", response_model=AdminUserList)
async def list_users(db: AsyncSession = Depends(get_db)) -> AdminUserList:
    """List every registered user, newest first."""
    users = await UserRepository(db).list_all()
    return AdminUserList(users=[UserProfile.model_validate(u) for u in users])
