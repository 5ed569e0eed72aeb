"""
Promoter assignment workflow.

Core steps (access, promoter resolution, duplicate check, terms, insert,
audit) fail loudly with a ServiceError. Peripheral steps (promoter role
grant, notification emails) are logged and never change the outcome.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from app.core.payouts import (
    PayoutBreakdown,
    PromoterContract,
    build_referral_link,
    calculate_promoter_payout,
)
from app.core.roles import UserRoleName
from app.crud.event_promoter import (
    count_checkins_for_promoter,
    count_promoter_assignments,
    get_assignment,
    get_assignment_for_event,
    list_event_assignments,
    registration_counts_by_promoter,
)
from app.models.event import Event
from app.models.event_promoter import EventPromoter
from app.models.promoter import Promoter
from app.services.audit_service import AuditService
from app.services.commission_terms import CommissionTerms, resolve_commission_terms
from app.services.event_access import EventAccess
from app.services.promoter_emails import EventDetails, PromoterEmailSender
from app.services.user_directory import UserDirectory

module_logger = logging.getLogger(__name__)

UNKNOWN_PROMOTER_NAME = "Unknown"


@dataclass(frozen=True)
class PromoterRequest:
    promoter_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None


@dataclass
class CommissionRequest:
    # Only the term keys the client actually sent
    terms: Dict[str, Any] = field(default_factory=dict)
    template_id: Optional[uuid.UUID] = None
    commission_type: Optional[str] = None
    commission_config: Optional[Dict[str, Any]] = None
    assigned_by: Optional[str] = None


def _audit_snapshot(row: EventPromoter) -> Dict[str, Any]:
    return {
        "event_id": str(row.event_id),
        "promoter_id": str(row.promoter_id),
        "commission_type": row.commission_type,
        "assigned_by": row.assigned_by,
    }


class PromoterAssignmentService:
    def __init__(
        self,
        db: AsyncSession,
        *,
        email_sender: Optional[PromoterEmailSender] = None,
        base_url: str = "http://localhost:3000",
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.email_sender = email_sender
        self.base_url = base_url.rstrip("/")
        self.logger = logger or module_logger

        self.directory = UserDirectory(db)
        self.access = EventAccess(db, self.directory)
        self.audit = AuditService(db)

    # ========================================================================
    # Promoter resolution
    # ========================================================================

    async def resolve_promoter(
        self,
        request: PromoterRequest,
        acting_user_id: Optional[uuid.UUID] = None,
    ) -> Promoter:
        if request.promoter_id is not None:
            promoter = await self._promoter_by_id(request.promoter_id)
        elif request.user_id is not None:
            promoter = await self._promoter_for_user(request.user_id)
        else:
            raise ValidationError("Either promoter_id or user_id is required")

        await self._ensure_promoter_role(promoter, acting_user_id)
        return promoter

    async def _linked_promoter(self, user_id: uuid.UUID) -> Optional[Promoter]:
        stmt = select(Promoter).where(Promoter.linked_user_id == user_id).limit(1)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _promoter_for_user(self, user_id: uuid.UUID) -> Promoter:
        linked = await self._linked_promoter(user_id)
        if linked is not None:
            return linked

        # Legacy rows only carry the owner in created_by
        stmt = (
            select(Promoter)
            .where(Promoter.created_by == user_id, Promoter.linked_user_id.is_(None))
            .order_by(Promoter.created_at, Promoter.id)
            .limit(1)
        )
        legacy = (await self.db.execute(stmt)).scalar_one_or_none()
        if legacy is not None:
            return await self._save_linked(legacy, user_id)

        user = await self.directory.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        name = (
            await self.directory.get_attendee_name(user.id)
            or (user.full_name or "").strip()
            or user.email_local_part
            or UNKNOWN_PROMOTER_NAME
        )

        promoter = Promoter(
            name=name,
            email=user.email,
            linked_user_id=user.id,
            created_by=user.id,
        )
        promoter = await self._save_linked(promoter, user.id)

        self.logger.info("promoter_created", extra={"promoter_id": str(promoter.id), "user_id": str(user.id)})
        return promoter

    async def _save_linked(self, promoter: Promoter, user_id: uuid.UUID) -> Promoter:
        """Link `promoter` to the user; a concurrent request that linked first wins."""
        try:
            async with self.db.begin_nested():
                promoter.linked_user_id = user_id
                self.db.add(promoter)
        except IntegrityError:
            winner = await self._linked_promoter(user_id)
            if winner is None:
                raise
            self.logger.info(
                "promoter_link_race",
                extra={"promoter_id": str(winner.id), "user_id": str(user_id)},
            )
            return winner
        return promoter

    async def _promoter_by_id(self, promoter_id: uuid.UUID) -> Promoter:
        promoter = await self.db.get(Promoter, promoter_id)
        if promoter is None:
            raise NotFoundError("Promoter not found")

        if promoter.email and promoter.linked_user_id is None:
            user = await self.directory.find_user_by_email(promoter.email)
            # A user is linked to at most one promoter
            if user is not None and await self._linked_promoter(user.id) is None:
                try:
                    async with self.db.begin_nested():
                        promoter.linked_user_id = user.id
                except IntegrityError:
                    await self.db.refresh(promoter)
                    return promoter
                self.logger.info(
                    "promoter_linked_by_email",
                    extra={"promoter_id": str(promoter.id), "user_id": str(user.id)},
                )

        return promoter

    async def _ensure_promoter_role(self, promoter: Promoter, acting_user_id: Optional[uuid.UUID]) -> None:
        if promoter.linked_user_id is None:
            return
        try:
            if await self.directory.has_role(promoter.linked_user_id, UserRoleName.PROMOTER):
                return
            await self.directory.grant_role(
                promoter.linked_user_id,
                UserRoleName.PROMOTER,
                assigned_by=acting_user_id,
                assigned_via="event_assignment",
                promoter_id=promoter.id,
            )
            self.logger.info(
                "promoter_role_granted",
                extra={"promoter_id": str(promoter.id), "user_id": str(promoter.linked_user_id)},
            )
        except Exception as e:
            self.logger.warning(
                "role_grant_failed",
                extra={"promoter_id": str(promoter.id), "user_id": str(promoter.linked_user_id), "error": str(e)},
            )

    # ========================================================================
    # Assign / remove
    # ========================================================================

    async def assign(
        self,
        event_id: uuid.UUID,
        promoter_request: PromoterRequest,
        commission_request: CommissionRequest,
        acting_user_id: uuid.UUID,
    ) -> EventPromoter:
        event = await self.access.require_manage(event_id, acting_user_id)

        promoter = await self.resolve_promoter(promoter_request, acting_user_id)

        # Fast path for a friendly error; the unique constraint is authoritative.
        if await get_assignment(self.db, event.id, promoter.id) is not None:
            raise ConflictError("Promoter is already assigned to this event")

        terms = await resolve_commission_terms(
            self.db,
            commission_request.terms,
            commission_request.template_id,
            event.organizer_id,
            commission_type=commission_request.commission_type,
            commission_config=commission_request.commission_config,
        )

        assigned_by = await self.access.determine_assigned_by(event, acting_user_id, commission_request.assigned_by)

        row = EventPromoter(event_id=event.id, promoter=promoter, **terms.column_values())
        if assigned_by is not None:
            row.assigned_by = assigned_by
        self.db.add(row)

        try:
            await self.db.flush()

            created = (
                await self.db.execute(
                    select(EventPromoter)
                    .where(EventPromoter.id == row.id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if created is None or created.id is None:
                raise InternalError("insert returned no data")

            await self.audit.log(
                action="PROMOTER_ASSIGNED",
                entity_type="EVENT_PROMOTER",
                entity_id=created.id,
                user_id=acting_user_id,
                new_values=_audit_snapshot(created),
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Promoter is already assigned to this event")
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("promoter_assign_failed", extra={"event_id": str(event_id), "error": str(e)})
            raise InternalError("Failed to add promoter")

        self.logger.info(
            "promoter_assigned",
            extra={
                "event_id": str(event.id),
                "promoter_id": str(promoter.id),
                "event_promoter_id": str(created.id),
                "commission_type": created.commission_type,
                "assigned_by": created.assigned_by,
            },
        )

        try:
            await self._notify_assignment(event, promoter, created, terms, acting_user_id)
        except Exception as e:
            self.logger.warning(
                "assignment_email_failed",
                extra={"event_id": str(event.id), "promoter_id": str(promoter.id), "error": str(e)},
            )

        return created

    async def remove(
        self,
        event_promoter_id: uuid.UUID,
        event_id: uuid.UUID,
        acting_user_id: uuid.UUID,
    ) -> None:
        await self.access.require_manage(event_id, acting_user_id)

        row = await get_assignment_for_event(self.db, event_promoter_id, event_id)
        if row is None:
            raise NotFoundError("Promoter assignment not found")

        snapshot = _audit_snapshot(row)
        await self.db.delete(row)
        await self.audit.log(
            action="PROMOTER_UNASSIGNED",
            entity_type="EVENT_PROMOTER",
            entity_id=event_promoter_id,
            user_id=acting_user_id,
            old_values=snapshot,
        )
        await self.db.commit()

        self.logger.info(
            "promoter_unassigned",
            extra={"event_id": str(event_id), "event_promoter_id": str(event_promoter_id)},
        )

    # ========================================================================
    # Read side
    # ========================================================================

    async def list_for_event(
        self,
        event_id: uuid.UUID,
        acting_user_id: uuid.UUID,
    ) -> List[Tuple[EventPromoter, int]]:
        await self.access.require_manage(event_id, acting_user_id)

        rows = await list_event_assignments(self.db, event_id)
        counts = await registration_counts_by_promoter(self.db, event_id)
        return [(row, counts.get(row.promoter_id, 0)) for row in rows]

    async def estimate_payout(
        self,
        event_id: uuid.UUID,
        event_promoter_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        checkins: Optional[int] = None,
    ) -> Tuple[EventPromoter, str, int, PayoutBreakdown]:
        event = await self.access.require_manage(event_id, acting_user_id)

        row = await get_assignment_for_event(self.db, event_promoter_id, event_id)
        if row is None:
            raise NotFoundError("Promoter assignment not found")

        if checkins is None:
            checkins = await count_checkins_for_promoter(self.db, event_id, row.promoter_id)

        breakdown = calculate_promoter_payout(PromoterContract.from_terms(row), checkins)
        return row, (row.currency or event.currency), checkins, breakdown

    # ========================================================================
    # Notifications (best effort)
    # ========================================================================

    async def _notify_assignment(
        self,
        event: Event,
        promoter: Promoter,
        assignment: EventPromoter,
        terms: CommissionTerms,
        acting_user_id: uuid.UUID,
    ) -> None:
        if self.email_sender is None:
            return

        if await count_promoter_assignments(self.db, promoter.id, exclude_id=assignment.id) == 0:
            try:
                welcome = await self.email_sender.send_promoter_welcome_email(
                    promoter.id,
                    promoter.name,
                    promoter.email,
                    promoter.linked_user_id,
                    event.id,
                )
                self.logger.info(
                    "promoter_welcome_email",
                    extra={"promoter_id": str(promoter.id), "success": welcome.success, "skipped": welcome.skipped},
                )
            except Exception as e:
                # The assignment email still goes out
                self.logger.warning(
                    "promoter_welcome_email_failed",
                    extra={"promoter_id": str(promoter.id), "error": str(e)},
                )

        venue = event.venue
        details = EventDetails(
            event_id=event.id,
            event_name=event.name,
            event_slug=event.slug,
            event_date=event.start_time,
            event_end_date=event.end_time,
            event_description=event.description,
            venue_name=venue.name if venue else None,
            venue_address=venue.address if venue else None,
            venue_city=venue.city if venue else None,
            venue_state=venue.state if venue else None,
            flier_url=event.flier_url,
            referral_link=build_referral_link(self.base_url, event.slug, promoter.id),
        )

        result = await self.email_sender.send_event_assignment_email(
            promoter.id,
            promoter.name,
            promoter.email,
            promoter.linked_user_id,
            details,
            terms.column_values(),
            event.currency,
        )
        self.logger.info(
            "promoter_assignment_email",
            extra={
                "event_id": str(event.id),
                "promoter_id": str(promoter.id),
                "success": result.success,
                "acting_user_id": str(acting_user_id),
            },
        )
