# backend/app/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import MeResponse
from app.services.user_directory import UserDirectory

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    """
    Returns current user identity + granted roles.
    """
    roles = await UserDirectory(db).list_roles(user.id)
    return MeResponse(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        is_active=getattr(user, "is_active", True),
        roles=sorted(roles),
    )
