from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base, JSONType


class CommissionTemplate(Base):
    """
    Organizer-scoped reusable payout defaults.
    Same term columns as EventPromoter; explicit request fields override them one by one.
    """

    __tablename__ = "promoter_payout_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    organizer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="Default")

    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    per_head_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    per_head_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    per_head_max: Mapped[int | None] = mapped_column(Integer, nullable=True)

    fixed_fee: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    minimum_guests: Mapped[int | None] = mapped_column(Integer, nullable=True)
    below_minimum_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)

    bonus_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bonus_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    bonus_tiers: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
