# app/crud/event_promoter.py
from __future__ import annotations

import uuid
from typing import Dict, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event_promoter import EventPromoter
from app.models.registration import Registration


async def get_assignment(
    db: AsyncSession,
    event_id: uuid.UUID,
    promoter_id: uuid.UUID,
) -> Optional[EventPromoter]:
    stmt = (
        select(EventPromoter)
        .where(EventPromoter.event_id == event_id)
        .where(EventPromoter.promoter_id == promoter_id)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_assignment_for_event(
    db: AsyncSession,
    event_promoter_id: uuid.UUID,
    event_id: uuid.UUID,
) -> Optional[EventPromoter]:
    """
    Only returns the row when it belongs to `event_id`.
    """
    stmt = (
        select(EventPromoter)
        .where(EventPromoter.id == event_promoter_id)
        .where(EventPromoter.event_id == event_id)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_event_assignments(db: AsyncSession, event_id: uuid.UUID) -> Sequence[EventPromoter]:
    stmt = (
        select(EventPromoter)
        .where(EventPromoter.event_id == event_id)
        .order_by(EventPromoter.created_at, EventPromoter.id)
    )
    return (await db.execute(stmt)).scalars().all()


async def count_promoter_assignments(
    db: AsyncSession,
    promoter_id: uuid.UUID,
    exclude_id: Optional[uuid.UUID] = None,
) -> int:
    """
    Counts assignments for a promoter across all events.
    `exclude_id` leaves out the assignment being created, so 0 means "first ever".
    """
    stmt = select(func.count(EventPromoter.id)).where(EventPromoter.promoter_id == promoter_id)
    if exclude_id is not None:
        stmt = stmt.where(EventPromoter.id != exclude_id)
    res = await db.execute(stmt)
    return int(res.scalar() or 0)


async def registration_counts_by_promoter(db: AsyncSession, event_id: uuid.UUID) -> Dict[uuid.UUID, int]:
    stmt = (
        select(Registration.referral_promoter_id, func.count(Registration.id))
        .where(Registration.event_id == event_id)
        .where(Registration.referral_promoter_id.is_not(None))
        .group_by(Registration.referral_promoter_id)
    )
    rows = (await db.execute(stmt)).all()
    return {promoter_id: int(count) for promoter_id, count in rows}


async def count_checkins_for_promoter(
    db: AsyncSession,
    event_id: uuid.UUID,
    promoter_id: uuid.UUID,
) -> int:
    stmt = (
        select(func.count(Registration.id))
        .where(Registration.event_id == event_id)
        .where(Registration.referral_promoter_id == promoter_id)
        .where(Registration.checked_in_at.is_not(None))
    )
    res = await db.execute(stmt)
    return int(res.scalar() or 0)
