# backend/app/models/user_role.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class UserRole(Base):
    """
    Role grant for a user. One active grant per (user, role).
    """

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # superadmin | event_organizer | venue_admin | promoter | attendee
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    # Provenance of the grant
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assigned_via: Mapped[str | None] = mapped_column(String(40), nullable=True)
    promoter_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
