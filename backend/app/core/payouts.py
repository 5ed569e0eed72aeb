# app/core/payouts.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

CENT = Decimal("0.01")

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "AUD": "A$",
    "CAD": "CA$",
}


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


@dataclass(frozen=True)
class BonusTier:
    threshold: int
    amount: Decimal
    repeatable: bool = False
    label: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "BonusTier":
        return cls(
            threshold=int(raw["threshold"]),
            amount=to_decimal(raw.get("amount")) or Decimal("0"),
            repeatable=bool(raw.get("repeatable", False)),
            label=raw.get("label") or None,
        )


def parse_bonus_tiers(raw: Iterable[Mapping[str, Any]] | None) -> list[BonusTier]:
    if not raw:
        return []
    return [BonusTier.from_raw(t) for t in raw]


@dataclass(frozen=True)
class PromoterContract:
    per_head_rate: Optional[Decimal] = None
    per_head_min: Optional[int] = None
    per_head_max: Optional[int] = None
    fixed_fee: Optional[Decimal] = None
    minimum_guests: Optional[int] = None
    below_minimum_percent: Optional[int] = None  # 50 => half the fixed fee below minimum_guests
    bonus_threshold: Optional[int] = None  # legacy single bonus
    bonus_amount: Optional[Decimal] = None  # legacy single bonus
    bonus_tiers: tuple[BonusTier, ...] = ()
    manual_adjustment_amount: Optional[Decimal] = None

    @classmethod
    def from_terms(cls, terms: Any, manual_adjustment: Any = None) -> "PromoterContract":
        """Build from an EventPromoter row or any object/mapping with the same term names."""
        get = terms.get if isinstance(terms, Mapping) else lambda k: getattr(terms, k, None)
        return cls(
            per_head_rate=to_decimal(get("per_head_rate")),
            per_head_min=get("per_head_min"),
            per_head_max=get("per_head_max"),
            fixed_fee=to_decimal(get("fixed_fee")),
            minimum_guests=get("minimum_guests"),
            below_minimum_percent=get("below_minimum_percent"),
            bonus_threshold=get("bonus_threshold"),
            bonus_amount=to_decimal(get("bonus_amount")),
            bonus_tiers=tuple(parse_bonus_tiers(get("bonus_tiers"))),
            manual_adjustment_amount=to_decimal(manual_adjustment),
        )


@dataclass
class BonusDetail:
    type: str  # legacy | tier | repeatable
    threshold: int
    amount: Decimal
    label: Optional[str] = None
    times_earned: Optional[int] = None


@dataclass
class PayoutBreakdown:
    per_head_amount: Decimal
    per_head_rate: Optional[Decimal]
    per_head_counted: int
    fixed_fee_amount: Decimal
    fixed_fee_full: Optional[Decimal]
    fixed_fee_percent_applied: Optional[int]
    bonus_amount: Decimal
    calculated_payout: Decimal
    manual_adjustment: Decimal
    final_payout: Decimal
    bonus_details: list[BonusDetail] = field(default_factory=list)


def calculate_promoter_payout(contract: PromoterContract, checkins: int) -> PayoutBreakdown:
    """
    Central payout policy, shared by estimates and statements.

    - per-head: only when a rate is set; below per_head_min pays nothing,
      above per_head_max is capped
    - fixed fee: only when set; below minimum_guests pays below_minimum_percent (default 100)
    - bonuses: tiers win over the legacy single bonus when any tier exists
    """
    checkins = max(0, int(checkins))

    per_head_amount = Decimal("0")
    per_head_counted = 0
    if contract.per_head_rate is not None:
        per_head_counted = checkins
        if contract.per_head_min is not None and per_head_counted < contract.per_head_min:
            per_head_counted = 0
        elif contract.per_head_max is not None and per_head_counted > contract.per_head_max:
            per_head_counted = contract.per_head_max
        per_head_amount = contract.per_head_rate * per_head_counted

    fixed_fee_amount = Decimal("0")
    fixed_fee_percent_applied: Optional[int] = None
    if contract.fixed_fee is not None:
        if contract.minimum_guests is not None and checkins < contract.minimum_guests:
            percent = contract.below_minimum_percent if contract.below_minimum_percent is not None else 100
            fixed_fee_percent_applied = percent
            fixed_fee_amount = (contract.fixed_fee * percent / Decimal(100)).quantize(CENT, ROUND_HALF_UP)
        else:
            fixed_fee_percent_applied = 100
            fixed_fee_amount = contract.fixed_fee

    bonus_amount = Decimal("0")
    details: list[BonusDetail] = []
    if contract.bonus_tiers:
        for tier in contract.bonus_tiers:
            if tier.repeatable:
                if tier.threshold <= 0:
                    continue
                times = checkins // tier.threshold
                if times > 0:
                    bonus_amount += tier.amount * times
                    details.append(
                        BonusDetail("repeatable", tier.threshold, tier.amount, tier.label, times_earned=times)
                    )
            elif checkins >= tier.threshold:
                bonus_amount += tier.amount
                details.append(BonusDetail("tier", tier.threshold, tier.amount, tier.label))
    elif (
        contract.bonus_threshold is not None
        and contract.bonus_amount is not None
        and checkins >= contract.bonus_threshold
    ):
        bonus_amount += contract.bonus_amount
        details.append(BonusDetail("legacy", contract.bonus_threshold, contract.bonus_amount))

    calculated = per_head_amount + fixed_fee_amount + bonus_amount
    manual = contract.manual_adjustment_amount or Decimal("0")

    return PayoutBreakdown(
        per_head_amount=per_head_amount,
        per_head_rate=contract.per_head_rate,
        per_head_counted=per_head_counted,
        fixed_fee_amount=fixed_fee_amount,
        fixed_fee_full=contract.fixed_fee,
        fixed_fee_percent_applied=fixed_fee_percent_applied,
        bonus_amount=bonus_amount,
        calculated_payout=calculated,
        manual_adjustment=manual,
        final_payout=calculated + manual,
        bonus_details=details,
    )


def format_amount(amount: Any, currency: str | None) -> str:
    """`$1,250` / `€40` / `IDR 150,000` (whole units, half-up)."""
    code = (currency or "USD").strip().upper()
    value = (to_decimal(amount) or Decimal("0")).quantize(Decimal("1"), ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,}"
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{sign}{symbol}{digits}"
    return f"{sign}{code} {digits}"


def _label_suffix(label: Optional[str]) -> str:
    return f" ({label})" if label else ""


def format_payout_terms(terms: Any, event_currency: str) -> str:
    """
    Human-readable terms for the assignment email, one bullet per component.
    """
    contract = PromoterContract.from_terms(terms)
    get = terms.get if isinstance(terms, Mapping) else lambda k: getattr(terms, k, None)
    terms_currency = get("currency")
    currency = terms_currency or event_currency

    parts: list[str] = []

    if contract.per_head_rate:
        text = f"{format_amount(contract.per_head_rate, currency)} per guest"
        conditions: list[str] = []
        if contract.per_head_min:
            conditions.append(f"min {contract.per_head_min} guests")
        if contract.per_head_max:
            conditions.append(f"max {contract.per_head_max} guests")
        if conditions:
            text += f" ({', '.join(conditions)})"
        parts.append(text)

    if contract.fixed_fee:
        text = f"Fixed fee: {format_amount(contract.fixed_fee, currency)}"
        pct = contract.below_minimum_percent
        if contract.minimum_guests and pct is not None and pct != 100:
            text += f" ({pct}% if below {contract.minimum_guests} guests)"
        parts.append(text)

    if contract.bonus_tiers:
        for tier in contract.bonus_tiers:
            how = "every" if tier.repeatable else "at"
            parts.append(
                f"Bonus: {format_amount(tier.amount, currency)} {how} {tier.threshold} guests{_label_suffix(tier.label)}"
            )
    elif contract.bonus_threshold and contract.bonus_amount:
        parts.append(f"Bonus: {format_amount(contract.bonus_amount, currency)} at {contract.bonus_threshold} guests")

    if terms_currency and terms_currency != event_currency:
        parts.append(f"(Currency: {terms_currency})")

    return "\n• ".join(parts) if parts else "To be determined"


def format_payout_breakdown(breakdown: PayoutBreakdown, currency: str) -> str:
    """One-line statement: `12 check-ins × $10 = $120 + Fixed fee: $200 + ...`"""
    fmt = lambda amount: format_amount(amount, currency)  # noqa: E731
    parts: list[str] = []

    if breakdown.per_head_amount > 0:
        parts.append(
            f"{breakdown.per_head_counted} check-ins × {fmt(breakdown.per_head_rate or 0)} = {fmt(breakdown.per_head_amount)}"
        )

    if breakdown.fixed_fee_amount > 0:
        pct = breakdown.fixed_fee_percent_applied
        if pct is not None and pct < 100:
            parts.append(
                f"Fixed fee: {fmt(breakdown.fixed_fee_full or 0)} × {pct}% = {fmt(breakdown.fixed_fee_amount)}"
            )
        else:
            parts.append(f"Fixed fee: {fmt(breakdown.fixed_fee_amount)}")

    for bonus in breakdown.bonus_details:
        label = f" - {bonus.label}" if bonus.label else ""
        if bonus.type == "repeatable" and bonus.times_earned:
            parts.append(f"Bonus: {fmt(bonus.amount)} × {bonus.times_earned} (every {bonus.threshold} guests){label}")
        else:
            parts.append(f"Bonus: {fmt(bonus.amount)} ({bonus.threshold}+ guests){label}")

    if breakdown.manual_adjustment != 0:
        sign = "+" if breakdown.manual_adjustment > 0 else ""
        parts.append(f"Manual adjustment: {sign}{fmt(breakdown.manual_adjustment)}")

    return " + ".join(parts)


def build_referral_link(base_url: str, event_slug: str, promoter_id: Any) -> str:
    return f"{base_url.rstrip('/')}/e/{event_slug}?ref={promoter_id}"
