from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

# Settings are read at import time; tests run on in-memory SQLite.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.api.deps.promoters import get_promoter_email_sender
from app.db.session import get_db
from app.services.promoter_emails import EmailResult

# Ensure Base + models are registered before create_all
from app.db.base import Base
import app.models  # noqa: F401
from app.models.event import Event
from app.models.organizer import Organizer
from app.models.user import User
from app.models.venue import Venue
from tests.factories import (
    add_venue_staff,
    create_event,
    create_organizer,
    create_user,
    create_venue,
)


# ---------------------------------------------------------
# Engine (fresh in-memory database per test)
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    Commit setup data before calling the API (the app uses its own session).
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# Email sender double
# ---------------------------------------------------------
@dataclass
class FakeEmailSender:
    """Records calls; `fail=True` makes every send raise, `fail_welcome=True` only the welcome."""

    fail: bool = False
    fail_welcome: bool = False
    welcome_calls: List[dict] = field(default_factory=list)
    assignment_calls: List[dict] = field(default_factory=list)

    async def send_promoter_welcome_email(self, promoter_id, name, email, linked_user_id, event_id=None):
        if self.fail or self.fail_welcome:
            raise RuntimeError("smtp down")
        self.welcome_calls.append(
            {"promoter_id": promoter_id, "name": name, "email": email, "event_id": event_id}
        )
        return EmailResult(success=True)

    async def send_event_assignment_email(
        self, promoter_id, name, email, linked_user_id, event_details, commission_terms, currency
    ):
        if self.fail:
            raise RuntimeError("smtp down")
        self.assignment_calls.append(
            {
                "promoter_id": promoter_id,
                "email": email,
                "event_details": event_details,
                "commission_terms": dict(commission_terms),
                "currency": currency,
            }
        )
        return EmailResult(success=True)


@pytest.fixture()
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker, email_sender):
    from app.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    async def _override_email_sender():
        return email_sender

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_promoter_email_sender] = _override_email_sender
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------
# Shared scenario
# ---------------------------------------------------------
@dataclass
class World:
    organizer_owner: User
    organizer: Organizer
    venue_admin: User
    venue: Venue
    event: Event
    outsider: User


@pytest_asyncio.fixture()
async def world(db) -> World:
    """An organizer-owned event at a venue, plus a user with no access."""
    owner = await create_user(db, "owner@example.com", full_name="Olive Owner")
    organizer = await create_organizer(db, owner)
    venue_admin = await create_user(db, "venue@example.com", full_name="Vic Venue")
    venue = await create_venue(db)
    await add_venue_staff(db, venue, venue_admin)
    event = await create_event(db, organizer, venue)
    outsider = await create_user(db, "outsider@example.com")
    await db.commit()
    return World(owner, organizer, venue_admin, venue, event, outsider)
