"""
Commission terms for an event assignment.

Precedence per field: explicit request value (when the key is present) >
template value > null. A key that is present but blank stays null; it does
not fall back to the template.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.payouts import CENT
from app.core.roles import CommissionType
from app.models.commission_template import CommissionTemplate

logger = logging.getLogger(__name__)

DECIMAL_FIELDS = ("per_head_rate", "bonus_amount", "fixed_fee")
INT_FIELDS = ("per_head_min", "per_head_max", "bonus_threshold", "minimum_guests", "below_minimum_percent")
TERM_FIELDS = (
    "currency",
    "per_head_rate",
    "per_head_min",
    "per_head_max",
    "bonus_threshold",
    "bonus_amount",
    "bonus_tiers",
    "fixed_fee",
    "minimum_guests",
    "below_minimum_percent",
)
# Any of these set => enhanced model
ENHANCED_FIELDS = ("per_head_rate", "fixed_fee", "bonus_threshold", "bonus_tiers", "minimum_guests")

DEFAULT_FLAT_CONFIG: Dict[str, Any] = {"amount_per_head": 0}

# Column limits: Numeric(12, 2) and a 32-bit Integer
MAX_MONEY = Decimal("9999999999.99")
MAX_INT = 2**31 - 1


@dataclass
class CommissionTerms:
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
    template_id: Optional[uuid.UUID] = field(default=None, compare=False)

    def column_values(self) -> Dict[str, Any]:
        values = asdict(self)
        values.pop("template_id", None)
        return values


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{name} must be a number")
    return d


def _to_money(name: str, value: Any) -> Decimal:
    d = _to_decimal(name, value)
    if d < 0:
        raise ValidationError(f"{name} must not be negative")
    if d > MAX_MONEY:
        raise ValidationError(f"{name} must be at most {MAX_MONEY}")
    return d.quantize(CENT, ROUND_HALF_UP)


def _to_int(name: str, value: Any) -> int:
    # "10", 10, 10.0 and "10.7" (truncated) are all accepted
    d = _to_decimal(name, value)
    if d < 0:
        raise ValidationError(f"{name} must not be negative")
    limit = 100 if name == "below_minimum_percent" else MAX_INT
    if d >= limit + 1:
        raise ValidationError(f"{name} must be at most {limit}")
    return int(d)


def _to_tiers(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError("bonus_tiers must be a list")
    tiers: List[Dict[str, Any]] = []
    for raw in value:
        if hasattr(raw, "model_dump"):
            raw = raw.model_dump()
        if not isinstance(raw, Mapping) or "threshold" not in raw or "amount" not in raw:
            raise ValidationError("each bonus tier needs threshold and amount")
        threshold = _to_int("bonus_tiers.threshold", raw["threshold"])
        if threshold < 1:
            raise ValidationError("bonus_tiers.threshold must be >= 1")
        tier: Dict[str, Any] = {
            "threshold": threshold,
            "amount": str(_to_money("bonus_tiers.amount", raw["amount"])),
            "repeatable": bool(raw.get("repeatable", False)),
        }
        label = (raw.get("label") or "").strip() if isinstance(raw.get("label"), str) else None
        if label:
            tier["label"] = label
        tiers.append(tier)
    return tiers


def coerce_term(name: str, value: Any) -> Any:
    """Parse one term value; blank => None."""
    if _is_blank(value):
        return None
    if name in DECIMAL_FIELDS:
        return _to_money(name, value)
    if name in INT_FIELDS:
        return _to_int(name, value)
    if name == "bonus_tiers":
        return _to_tiers(value)
    if name == "currency":
        return str(value).strip().upper()
    return value


def merge_commission_terms(
    body: Mapping[str, Any],
    template: Optional[CommissionTemplate] = None,
    *,
    commission_type: Optional[str] = None,
    commission_config: Optional[Dict[str, Any]] = None,
) -> CommissionTerms:
    """
    `body` must only contain keys the client actually sent.
    """
    values: Dict[str, Any] = {}
    for name in TERM_FIELDS:
        if name in body:
            values[name] = coerce_term(name, body[name])
        elif template is not None:
            values[name] = coerce_term(name, getattr(template, name, None))
        else:
            values[name] = None

    if any(values[name] is not None for name in ENHANCED_FIELDS):
        ctype = CommissionType.ENHANCED.value
        config = commission_config
    else:
        ctype = commission_type or CommissionType.FLAT_PER_HEAD.value
        try:
            ctype = CommissionType(ctype).value
        except ValueError:
            raise ValidationError("commission_type must be one of: flat_per_head, enhanced")
        config = commission_config
        if ctype == CommissionType.FLAT_PER_HEAD.value and not config:
            config = dict(DEFAULT_FLAT_CONFIG)

    return CommissionTerms(
        commission_type=ctype,
        commission_config=config,
        template_id=template.id if template is not None else None,
        **values,
    )


async def load_template(
    db: AsyncSession,
    template_id: Optional[uuid.UUID],
    organizer_id: Optional[uuid.UUID],
) -> Optional[CommissionTemplate]:
    """Template scoped to the organizer; anything else is ignored."""
    if template_id is None or organizer_id is None:
        return None
    stmt = select(CommissionTemplate).where(
        CommissionTemplate.id == template_id,
        CommissionTemplate.organizer_id == organizer_id,
    )
    template = (await db.execute(stmt)).scalar_one_or_none()
    if template is None:
        logger.debug(
            "commission_template_ignored",
            extra={"template_id": str(template_id), "organizer_id": str(organizer_id)},
        )
    return template


async def resolve_commission_terms(
    db: AsyncSession,
    body: Mapping[str, Any],
    template_id: Optional[uuid.UUID],
    organizer_id: Optional[uuid.UUID],
    *,
    commission_type: Optional[str] = None,
    commission_config: Optional[Dict[str, Any]] = None,
) -> CommissionTerms:
    template = await load_template(db, template_id, organizer_id)
    return merge_commission_terms(
        body,
        template,
        commission_type=commission_type,
        commission_config=commission_config,
    )
