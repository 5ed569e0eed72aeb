from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import credentials_exception, bearer_scheme, decode_access_token
from app.db.session import get_db
from app.models.user import User


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints.
    """
    if credentials is None:
        raise credentials_exception("Unauthorized")

    user_id = decode_access_token(credentials.credentials)

    user = await db.get(User, user_id)
    if not user:
        raise credentials_exception("User not found")

    if not getattr(user, "is_active", True):
        raise credentials_exception("User inactive")

    return user
