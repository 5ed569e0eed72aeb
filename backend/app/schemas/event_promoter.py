# app/schemas/event_promoter.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Numbers arrive from form-driven clients as numbers, numeric strings or "".
# Coercion (and "" => null) happens in app.services.commission_terms.
NumberLike = Union[int, float, str]


class BonusTierIn(BaseModel):
    threshold: int = Field(ge=1)
    amount: Decimal
    repeatable: bool = False
    label: Optional[str] = Field(default=None, max_length=120)


class EventPromoterCreate(BaseModel):
    """
    Assign a promoter to an event.
    Provide promoter_id (existing promoter) or user_id (promoter profile is created/reused).
    Term fields left out fall back to the template; fields sent as null/"" stay null.
    """

    model_config = ConfigDict(extra="ignore")

    promoter_id: Optional[UUID] = None
    user_id: Optional[UUID] = None

    commission_type: Optional[str] = None
    commission_config: Optional[Dict[str, Any]] = None
    assigned_by: Optional[str] = None
    template_id: Optional[UUID] = None

    currency: Optional[str] = Field(default=None, max_length=3)
    per_head_rate: Optional[NumberLike] = None
    per_head_min: Optional[NumberLike] = None
    per_head_max: Optional[NumberLike] = None
    bonus_threshold: Optional[NumberLike] = None
    bonus_amount: Optional[NumberLike] = None
    bonus_tiers: Optional[Union[List[BonusTierIn], str]] = None
    fixed_fee: Optional[NumberLike] = None
    minimum_guests: Optional[NumberLike] = None
    below_minimum_percent: Optional[NumberLike] = None


class EventPromoterRemove(BaseModel):
    event_promoter_id: Optional[UUID] = None


class PromoterOut(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EventPromoterOut(BaseModel):
    id: UUID
    event_id: UUID
    promoter_id: UUID

    commission_type: str
    commission_config: Optional[Dict[str, Any]] = None
    currency: Optional[str] = None

    per_head_rate: Optional[Decimal] = None
    per_head_min: Optional[int] = None
    per_head_max: Optional[int] = None
    bonus_threshold: Optional[int] = None
    bonus_amount: Optional[Decimal] = None
    bonus_tiers: Optional[List[Dict[str, Any]]] = None
    fixed_fee: Optional[Decimal] = None
    minimum_guests: Optional[int] = None
    below_minimum_percent: Optional[int] = None

    assigned_by: str
    created_at: datetime

    promoter: Optional[PromoterOut] = None

    model_config = ConfigDict(from_attributes=True)


class EventPromoterWithStatsOut(EventPromoterOut):
    registrations: int = 0


class EventPromoterListOut(BaseModel):
    promoters: List[EventPromoterWithStatsOut]


class EventPromoterCreatedOut(BaseModel):
    success: bool = True
    eventPromoter: EventPromoterOut


class SuccessOut(BaseModel):
    success: bool = True


class BonusDetailOut(BaseModel):
    type: str
    threshold: int
    amount: Decimal
    label: Optional[str] = None
    times_earned: Optional[int] = None


class PayoutEstimateOut(BaseModel):
    event_promoter_id: UUID
    currency: str
    checkins: int

    per_head_amount: Decimal
    per_head_rate: Optional[Decimal] = None
    per_head_counted: int
    fixed_fee_amount: Decimal
    fixed_fee_full: Optional[Decimal] = None
    fixed_fee_percent_applied: Optional[int] = None
    bonus_amount: Decimal
    bonus_details: List[BonusDetailOut] = Field(default_factory=list)
    calculated_payout: Decimal
    manual_adjustment: Decimal
    final_payout: Decimal

    summary: str
