from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (
        Index("ix_registrations_event_referral", "event_id", "referral_promoter_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attendee_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("attendees.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Promoter whose referral link produced this registration
    referral_promoter_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("promoters.id", ondelete="SET NULL"),
        nullable=True,
    )

    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
