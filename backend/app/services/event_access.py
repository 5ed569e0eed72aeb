from __future__ import annotations

import uuid
from typing import Optional, Set

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.roles import AssignedBy
from app.models.event import Event
from app.models.organizer import Organizer, OrganizerUser
from app.models.venue import VenueUser
from app.services.user_directory import UserDirectory


class EventAccess:
    """
    Who may manage an event's promoters:
      - superadmin
      - the organizer that owns the event (creator or organizer staff)
      - a venue admin / the venue creator of the event's venue
    """

    def __init__(self, db: AsyncSession, directory: Optional[UserDirectory] = None):
        self.db = db
        self.directory = directory or UserDirectory(db)

    async def get_event(self, event_id: uuid.UUID) -> Event:
        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def organizer_ids_for_user(self, user_id: uuid.UUID) -> Set[uuid.UUID]:
        stmt = (
            select(Organizer.id)
            .outerjoin(OrganizerUser, OrganizerUser.organizer_id == Organizer.id)
            .where(or_(Organizer.created_by == user_id, OrganizerUser.user_id == user_id))
        )
        return set((await self.db.execute(stmt)).scalars().all())

    async def is_event_organizer(self, event: Event, user_id: uuid.UUID) -> bool:
        return event.organizer_id in await self.organizer_ids_for_user(user_id)

    async def is_venue_admin(self, event: Event, user_id: uuid.UUID) -> bool:
        if event.venue_id is None:
            return False

        venue = event.venue
        if venue is not None and venue.created_by == user_id:
            return True

        stmt = select(VenueUser.id).where(
            VenueUser.venue_id == event.venue_id,
            VenueUser.user_id == user_id,
        )
        return (await self.db.execute(stmt)).first() is not None

    async def can_manage(self, event: Event, user_id: uuid.UUID) -> bool:
        if await self.directory.is_superadmin(user_id):
            return True
        if await self.is_event_organizer(event, user_id):
            return True
        return await self.is_venue_admin(event, user_id)

    async def require_manage(self, event_id: uuid.UUID, user_id: uuid.UUID) -> Event:
        event = await self.get_event(event_id)
        if not await self.can_manage(event, user_id):
            raise ForbiddenError("Forbidden")
        return event

    async def determine_assigned_by(
        self,
        event: Event,
        user_id: uuid.UUID,
        explicit: Optional[str] = None,
    ) -> Optional[str]:
        """
        Venue attribution wins over organizer attribution when both apply.
        Returns None when neither matches (storage default then applies).
        """
        if explicit:
            try:
                return AssignedBy(explicit.strip().lower()).value
            except ValueError:
                raise ValidationError("assigned_by must be one of: organizer, venue")
        if await self.is_venue_admin(event, user_id):
            return AssignedBy.VENUE.value
        if await self.is_event_organizer(event, user_id):
            return AssignedBy.ORGANIZER.value
        return None
