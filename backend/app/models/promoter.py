from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Promoter(Base):
    """
    Promoter identity.

    A promoter may exist without a user account (created manually by staff).
    `linked_user_id` is attached once a matching account is found; a user is
    linked to at most one promoter.

    NOTE:
      - `created_by` is the legacy link column; older rows only carry the
        owning user there, so lookups by user check both columns.
    """

    __tablename__ = "promoters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    linked_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        unique=True,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PromoterOnboardingSent(Base):
    """One row per promoter once the welcome email went out."""

    __tablename__ = "promoter_onboarding_sent"

    promoter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("promoters.id", ondelete="CASCADE"),
        primary_key=True,
    )
    sent_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
