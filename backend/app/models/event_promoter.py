# app/models/event_promoter.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base, JSONType
from app.models.promoter import Promoter


class EventPromoter(Base):
    """
    Assignment of a promoter to one event, with the agreed commission terms.

    Two commission models:
      - flat_per_head: legacy, terms live in `commission_config` (opaque JSON)
      - enhanced: per-head rate (+ min/max), fixed fee (+ minimum guests),
        legacy single bonus or ordered `bonus_tiers`

    NOTE:
      - A NULL money/count column means "component not part of the deal",
        never zero.
      - uq_event_promoters_event_promoter is the source of truth for
        "one assignment per (event, promoter)".
    """

    __tablename__ = "event_promoters"
    __table_args__ = (
        UniqueConstraint("event_id", "promoter_id", name="uq_event_promoters_event_promoter"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    promoter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("promoters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # flat_per_head | enhanced
    commission_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="flat_per_head", server_default="flat_per_head"
    )
    commission_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    per_head_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    per_head_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    per_head_max: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # legacy single bonus
    bonus_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bonus_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # [{"threshold": int, "amount": "50.00", "repeatable": bool, "label": str?}, ...]
    bonus_tiers: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)

    fixed_fee: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    minimum_guests: Mapped[int | None] = mapped_column(Integer, nullable=True)
    below_minimum_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # organizer | venue
    assigned_by: Mapped[str] = mapped_column(
        String(20), nullable=False, default="organizer", server_default="organizer"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    promoter: Mapped[Promoter] = relationship(Promoter, lazy="joined", uselist=False)
