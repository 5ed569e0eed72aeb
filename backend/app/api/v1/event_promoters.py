# app/api/v1/event_promoters.py
from __future__ import annotations

import uuid
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from app.api.deps.auth import get_current_user
from app.api.deps.promoters import get_promoter_assignment_service
from app.core.errors import ValidationError
from app.core.payouts import format_payout_breakdown
from app.models.user import User
from app.schemas.event_promoter import (
    EventPromoterCreate,
    EventPromoterCreatedOut,
    EventPromoterListOut,
    EventPromoterOut,
    EventPromoterRemove,
    EventPromoterWithStatsOut,
    PayoutEstimateOut,
    SuccessOut,
)
from app.services.commission_terms import TERM_FIELDS
from app.services.promoter_assignment import (
    CommissionRequest,
    PromoterAssignmentService,
    PromoterRequest,
)

router = APIRouter(prefix="/events", tags=["event-promoters"])


# ---------------------------------------------------------
# List
# ---------------------------------------------------------
@router.get("/{event_id}/promoters", response_model=EventPromoterListOut)
async def list_event_promoters(
    event_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: PromoterAssignmentService = Depends(get_promoter_assignment_service),
):
    rows = await service.list_for_event(event_id, user.id)
    promoters = [
        EventPromoterWithStatsOut.model_validate(row).model_copy(update={"registrations": count})
        for row, count in rows
    ]
    return EventPromoterListOut(promoters=promoters)


# ---------------------------------------------------------
# Assign
# ---------------------------------------------------------
@router.post("/{event_id}/promoters", response_model=EventPromoterCreatedOut)
async def add_event_promoter(
    event_id: uuid.UUID,
    payload: EventPromoterCreate,
    user: User = Depends(get_current_user),
    service: PromoterAssignmentService = Depends(get_promoter_assignment_service),
):
    # Absent keys fall back to the template; keys sent as null/"" do not.
    sent = payload.model_fields_set
    terms = {name: getattr(payload, name) for name in TERM_FIELDS if name in sent}

    row = await service.assign(
        event_id,
        PromoterRequest(promoter_id=payload.promoter_id, user_id=payload.user_id),
        CommissionRequest(
            terms=terms,
            template_id=payload.template_id,
            commission_type=payload.commission_type,
            commission_config=payload.commission_config,
            assigned_by=payload.assigned_by,
        ),
        user.id,
    )
    return EventPromoterCreatedOut(success=True, eventPromoter=EventPromoterOut.model_validate(row))


# ---------------------------------------------------------
# Remove
# ---------------------------------------------------------
@router.delete("/{event_id}/promoters", response_model=SuccessOut)
async def remove_event_promoter(
    event_id: uuid.UUID,
    event_promoter_id: Optional[uuid.UUID] = Query(default=None),
    payload: Optional[EventPromoterRemove] = Body(default=None),
    user: User = Depends(get_current_user),
    service: PromoterAssignmentService = Depends(get_promoter_assignment_service),
):
    target = event_promoter_id or (payload.event_promoter_id if payload else None)
    if target is None:
        raise ValidationError("event_promoter_id is required")

    await service.remove(target, event_id, user.id)
    return SuccessOut(success=True)


# ---------------------------------------------------------
# Payout estimate
# ---------------------------------------------------------
@router.get(
    "/{event_id}/promoters/{event_promoter_id}/payout-estimate",
    response_model=PayoutEstimateOut,
)
async def estimate_event_promoter_payout(
    event_id: uuid.UUID,
    event_promoter_id: uuid.UUID,
    checkins: Optional[int] = Query(default=None, ge=0),
    user: User = Depends(get_current_user),
    service: PromoterAssignmentService = Depends(get_promoter_assignment_service),
):
    """
    Uses the promoter's actual check-ins unless `checkins` is given (what-if).
    """
    row, currency, counted, breakdown = await service.estimate_payout(
        event_id, event_promoter_id, user.id, checkins
    )
    return PayoutEstimateOut(
        event_promoter_id=row.id,
        currency=currency,
        checkins=counted,
        summary=format_payout_breakdown(breakdown, currency),
        **asdict(breakdown),
    )
