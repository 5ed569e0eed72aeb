# tests/factories.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.core.roles import UserRoleName
from app.core.security import create_access_token
from app.models.attendee import Attendee
from app.models.commission_template import CommissionTemplate
from app.models.event import Event
from app.models.organizer import Organizer, OrganizerUser
from app.models.promoter import Promoter
from app.models.user import User
from app.models.user_role import UserRole
from app.models.venue import Venue, VenueUser

def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def create_user(db, email: str, full_name: Optional[str] = None, is_active: bool = True) -> User:
    user = User(email=email, full_name=full_name, is_active=is_active)
    db.add(user)
    await db.flush()
    return user


async def grant(db, user: User, role: UserRoleName) -> UserRole:
    r = UserRole(user_id=user.id, role=role.value)
    db.add(r)
    await db.flush()
    return r


async def create_organizer(db, owner: User, name: str = "Night Owls") -> Organizer:
    org = Organizer(name=name, created_by=owner.id)
    db.add(org)
    await db.flush()
    return org


async def add_organizer_staff(db, organizer: Organizer, user: User) -> OrganizerUser:
    m = OrganizerUser(organizer_id=organizer.id, user_id=user.id)
    db.add(m)
    await db.flush()
    return m


async def create_venue(db, owner: Optional[User] = None, name: str = "The Basement") -> Venue:
    venue = Venue(
        name=name,
        address="12 Dock St",
        city="Austin",
        state="TX",
        created_by=owner.id if owner else None,
    )
    db.add(venue)
    await db.flush()
    return venue


async def add_venue_staff(db, venue: Venue, user: User) -> VenueUser:
    m = VenueUser(venue_id=venue.id, user_id=user.id)
    db.add(m)
    await db.flush()
    return m


async def create_event(
    db,
    organizer: Organizer,
    venue: Optional[Venue] = None,
    currency: str = "USD",
    slug: Optional[str] = None,
) -> Event:
    start = datetime(2026, 3, 14, 21, 30, tzinfo=timezone.utc)
    event = Event(
        organizer_id=organizer.id,
        venue_id=venue.id if venue else None,
        name="Warehouse Party",
        slug=slug or f"warehouse-{uuid.uuid4().hex[:8]}",
        start_time=start,
        end_time=start + timedelta(hours=5),
        currency=currency,
    )
    db.add(event)
    await db.flush()
    return event


async def create_promoter(db, name: str = "Pat Promoter", email: Optional[str] = None, **kwargs: Any) -> Promoter:
    promoter = Promoter(name=name, email=email, **kwargs)
    db.add(promoter)
    await db.flush()
    return promoter


async def create_attendee(db, user: User, name: str) -> Attendee:
    a = Attendee(user_id=user.id, name=name, email=user.email)
    db.add(a)
    await db.flush()
    return a


async def create_template(db, organizer: Organizer, **terms: Any) -> CommissionTemplate:
    t = CommissionTemplate(organizer_id=organizer.id, name="House rate", **terms)
    db.add(t)
    await db.flush()
    return t


