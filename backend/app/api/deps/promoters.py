# app/api/deps/promoters.py
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.services.promoter_assignment import PromoterAssignmentService
from app.services.promoter_emails import PostmarkPromoterEmails, PromoterEmailSender


async def get_promoter_email_sender(
    db: AsyncSession = Depends(get_db),
) -> PromoterEmailSender:
    return PostmarkPromoterEmails(
        db,
        api_token=settings.POSTMARK_API_TOKEN,
        from_email=settings.EMAIL_FROM,
        base_url=settings.APP_BASE_URL_CLEAN,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )


async def get_promoter_assignment_service(
    db: AsyncSession = Depends(get_db),
    email_sender: PromoterEmailSender = Depends(get_promoter_email_sender),
) -> PromoterAssignmentService:
    """
    One service per request, sharing the request's session with the email sender
    (welcome-once bookkeeping lands in the same database).
    """
    return PromoterAssignmentService(
        db,
        email_sender=email_sender,
        base_url=settings.APP_BASE_URL_CLEAN,
    )
