"""
Promoter notification emails (welcome + event assignment).

Delivered through the Postmark HTTP API. Every send is a single attempt with
a short timeout; results are returned, never raised, for expected failures.
"""

from __future__ import annotations

import html
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.payouts import format_payout_terms
from app.models.promoter import PromoterOnboardingSent

logger = logging.getLogger(__name__)

POSTMARK_API_URL = "https://api.postmarkapp.com/email"


@dataclass(frozen=True)
class EmailResult:
    success: bool
    skipped: bool = False
    message_id: Optional[str] = None


@dataclass(frozen=True)
class EventDetails:
    event_id: uuid.UUID
    event_name: str
    event_slug: str
    event_date: datetime
    referral_link: str
    event_end_date: Optional[datetime] = None
    event_description: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    venue_city: Optional[str] = None
    venue_state: Optional[str] = None
    flier_url: Optional[str] = None

    @property
    def venue_text(self) -> str:
        parts = [p for p in (self.venue_name, self.venue_address, self.venue_city, self.venue_state) if p]
        return ", ".join(parts) if parts else "Venue TBA"

    @property
    def time_text(self) -> str:
        text = f"{format_event_date(self.event_date)} at {format_event_time(self.event_date)}"
        if self.event_end_date is not None:
            text += f" - {format_event_time(self.event_end_date)}"
        return text


def format_event_date(value: datetime) -> str:
    # Saturday, March 14, 2026
    return f"{value:%A, %B} {value.day}, {value.year}"


def format_event_time(value: datetime) -> str:
    # 9:30 PM
    hour = value.hour % 12 or 12
    return f"{hour}:{value:%M} {'AM' if value.hour < 12 else 'PM'}"


class PromoterEmailSender(Protocol):
    async def send_promoter_welcome_email(
        self,
        promoter_id: uuid.UUID,
        name: str,
        email: Optional[str],
        linked_user_id: Optional[uuid.UUID],
        event_id: Optional[uuid.UUID] = None,
    ) -> EmailResult: ...

    async def send_event_assignment_email(
        self,
        promoter_id: uuid.UUID,
        name: str,
        email: Optional[str],
        linked_user_id: Optional[uuid.UUID],
        event_details: EventDetails,
        commission_terms: Mapping[str, Any],
        currency: str,
    ) -> EmailResult: ...


class PostmarkPromoterEmails:
    """PromoterEmailSender backed by Postmark."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        api_token: str = "",
        from_email: str = "",
        base_url: str = "http://localhost:3000",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.api_token = api_token
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
        tag: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> EmailResult:
        """
        POST one message to Postmark.

        Returns:
            EmailResult(success=True, message_id=...) when Postmark accepted it,
            EmailResult(success=False) otherwise (misconfiguration, HTTP error, timeout)
        """
        if not self.api_token:
            logger.warning("email_not_configured", extra={"tag": tag})
            return EmailResult(success=False)

        payload = {
            "From": self.from_email,
            "To": to_email,
            "Subject": subject,
            "HtmlBody": html_body,
            "TextBody": text_body,
            "Tag": tag,
            "MessageStream": "outbound",
            "Metadata": {k: str(v) for k, v in (metadata or {}).items() if v is not None},
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Postmark-Server-Token": self.api_token,
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(POSTMARK_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("email_send_error", extra={"tag": tag, "error": str(e)})
            return EmailResult(success=False)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200 or data.get("ErrorCode", 0) != 0:
            logger.error(
                "email_send_failed",
                extra={"tag": tag, "status": response.status_code, "error": data.get("Message")},
            )
            return EmailResult(success=False)

        logger.info("email_sent", extra={"tag": tag, "message_id": data.get("MessageID")})
        return EmailResult(success=True, message_id=data.get("MessageID"))

    # -----------------------------
    # Welcome (once per promoter)
    # -----------------------------
    async def _welcome_already_sent(self, promoter_id: uuid.UUID) -> bool:
        stmt = select(PromoterOnboardingSent.promoter_id).where(PromoterOnboardingSent.promoter_id == promoter_id)
        return (await self.db.execute(stmt)).first() is not None

    async def _mark_welcome_sent(self, promoter_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> None:
        self.db.add(PromoterOnboardingSent(promoter_id=promoter_id, sent_by=user_id))
        await self.db.commit()

    async def send_promoter_welcome_email(
        self,
        promoter_id: uuid.UUID,
        name: str,
        email: Optional[str],
        linked_user_id: Optional[uuid.UUID],
        event_id: Optional[uuid.UUID] = None,
    ) -> EmailResult:
        if not email:
            return EmailResult(success=False, skipped=True)

        if await self._welcome_already_sent(promoter_id):
            return EmailResult(success=True, skipped=True)

        dashboard_url = f"{self.base_url}/app/promoter"
        safe_name = html.escape(name)
        subject = "Welcome to the promoter program"
        text_body = (
            f"Hi {name},\n\n"
            "You've been added as a promoter. Share your referral links to bring guests "
            "to events and earn commission for every guest who checks in.\n\n"
            f"Your dashboard: {dashboard_url}\n"
        )
        html_body = (
            f"<p>Hi {safe_name},</p>"
            "<p>You've been added as a promoter. Share your referral links to bring guests "
            "to events and earn commission for every guest who checks in.</p>"
            f'<p><a href="{html.escape(dashboard_url)}">Open your promoter dashboard</a></p>'
        )

        result = await self.send_email(
            email,
            subject,
            html_body,
            text_body,
            tag="promoter_welcome",
            metadata={"promoter_id": promoter_id, "user_id": linked_user_id, "event_id": event_id},
        )
        if result.success:
            await self._mark_welcome_sent(promoter_id, linked_user_id)
        return result

    # -----------------------------
    # Event assignment
    # -----------------------------
    async def send_event_assignment_email(
        self,
        promoter_id: uuid.UUID,
        name: str,
        email: Optional[str],
        linked_user_id: Optional[uuid.UUID],
        event_details: EventDetails,
        commission_terms: Mapping[str, Any],
        currency: str,
    ) -> EmailResult:
        if not email:
            return EmailResult(success=False)

        terms_text = format_payout_terms(commission_terms, currency)
        dashboard_url = f"{self.base_url}/app/promoter/events"

        subject = f"You're promoting {event_details.event_name}"
        text_body = (
            f"Hi {name},\n\n"
            f"You've been assigned to promote {event_details.event_name}.\n\n"
            f"When: {event_details.time_text}\n"
            f"Where: {event_details.venue_text}\n\n"
            f"Your payout terms:\n• {terms_text}\n\n"
            f"Your referral link: {event_details.referral_link}\n"
            f"Dashboard: {dashboard_url}\n"
        )
        terms_html = "".join(f"<li>{html.escape(line)}</li>" for line in terms_text.split("\n• "))
        flier = (
            f'<p><img src="{html.escape(event_details.flier_url)}" alt="" style="max-width:100%"></p>'
            if event_details.flier_url
            else ""
        )
        html_body = (
            f"<p>Hi {html.escape(name)},</p>"
            f"<p>You've been assigned to promote <strong>{html.escape(event_details.event_name)}</strong>.</p>"
            f"{flier}"
            f"<p><strong>When:</strong> {html.escape(event_details.time_text)}<br>"
            f"<strong>Where:</strong> {html.escape(event_details.venue_text)}</p>"
            f"<p><strong>Your payout terms:</strong></p><ul>{terms_html}</ul>"
            f'<p>Your referral link: <a href="{html.escape(event_details.referral_link)}">'
            f"{html.escape(event_details.referral_link)}</a></p>"
            f'<p><a href="{html.escape(dashboard_url)}">Open your promoter dashboard</a></p>'
        )

        return await self.send_email(
            email,
            subject,
            html_body,
            text_body,
            tag="promoter_event_assigned",
            metadata={"promoter_id": promoter_id, "user_id": linked_user_id, "event_id": event_details.event_id},
        )
