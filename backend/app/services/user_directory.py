"""
User directory: account lookup and role grants.

Callers only see `find_user_by_email`; how the match is found (indexed
lookup first, bounded scan second) stays inside this module.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Set

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import UserRoleName
from app.models.attendee import Attendee
from app.models.user import User
from app.models.user_role import UserRole

logger = logging.getLogger(__name__)

EMAIL_SCAN_PAGE_SIZE = 200
EMAIL_SCAN_MAX_RECORDS = 1000


class UserDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_user_by_email(self, email: str | None) -> Optional[User]:
        """
        Case-insensitive match on the account email.

        1) indexed equality on the normalized address
        2) fallback: paged scan, capped at EMAIL_SCAN_MAX_RECORDS, comparing
           stripped + lowercased values (catches rows stored un-normalized)
        """
        needle = User.normalize_email(email)
        if not needle:
            return None

        user = (
            await self.db.execute(select(User).where(User.email == needle).limit(1))
        ).scalar_one_or_none()
        if user is not None:
            return user

        user = (
            await self.db.execute(select(User).where(func.lower(User.email) == needle).limit(1))
        ).scalar_one_or_none()
        if user is not None:
            return user

        scanned = 0
        while scanned < EMAIL_SCAN_MAX_RECORDS:
            page_size = min(EMAIL_SCAN_PAGE_SIZE, EMAIL_SCAN_MAX_RECORDS - scanned)
            rows = (
                await self.db.execute(
                    select(User).order_by(User.created_at, User.id).limit(page_size).offset(scanned)
                )
            ).scalars().all()
            for candidate in rows:
                if User.normalize_email(candidate.email) == needle:
                    return candidate
            scanned += len(rows)
            if len(rows) < page_size:
                break

        logger.debug("email_lookup_miss", extra={"scanned": scanned})
        return None

    async def get_attendee_name(self, user_id: uuid.UUID) -> Optional[str]:
        stmt = (
            select(Attendee.name)
            .where(Attendee.user_id == user_id)
            .order_by(Attendee.created_at)
            .limit(1)
        )
        name = (await self.db.execute(stmt)).scalar_one_or_none()
        if name is None:
            return None
        name = " ".join(name.strip().split())
        return name or None

    async def list_roles(self, user_id: uuid.UUID) -> Set[str]:
        rows = (await self.db.execute(select(UserRole.role).where(UserRole.user_id == user_id))).scalars().all()
        return set(rows)

    async def has_role(self, user_id: uuid.UUID, role: str | UserRoleName) -> bool:
        role_value = role.value if isinstance(role, UserRoleName) else role
        stmt = select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role_value)
        return (await self.db.execute(stmt)).first() is not None

    async def is_superadmin(self, user_id: uuid.UUID) -> bool:
        return await self.has_role(user_id, UserRoleName.SUPERADMIN)

    async def grant_role(
        self,
        user_id: uuid.UUID,
        role: str | UserRoleName,
        *,
        assigned_by: uuid.UUID | None = None,
        assigned_via: str | None = None,
        promoter_id: uuid.UUID | None = None,
    ) -> UserRole:
        """
        Insert a grant inside a SAVEPOINT so a failure (e.g. a concurrent
        grant hitting uq_user_roles_user_role) leaves the outer transaction usable.
        """
        role_value = role.value if isinstance(role, UserRoleName) else role
        grant = UserRole(
            user_id=user_id,
            role=role_value,
            assigned_by=assigned_by,
            assigned_via=assigned_via,
            promoter_id=promoter_id,
        )
        async with self.db.begin_nested():
            self.db.add(grant)
        return grant
