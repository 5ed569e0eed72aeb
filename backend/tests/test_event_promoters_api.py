# tests/test_event_promoters_api.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.roles import UserRoleName
from app.models.audit_log import AuditLog
from app.models.event_promoter import EventPromoter
from app.models.promoter import Promoter
from app.models.registration import Registration
from app.models.user_role import UserRole
from tests.factories import (
    auth_headers,
    create_attendee,
    create_event,
    create_organizer,
    create_promoter,
    create_template,
    create_user,
    grant,
)


def promoters_url(event_id) -> str:
    return f"/api/v1/events/{event_id}/promoters"


async def count_assignments(db, event_id) -> int:
    stmt = select(func.count(EventPromoter.id)).where(EventPromoter.event_id == event_id)
    return int((await db.execute(stmt)).scalar_one())


# ---------------------------------------------------------
# Auth + access
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_requires_bearer_token(client, world):
    r = await client.get(promoters_url(world.event.id))
    assert r.status_code == 401

    r = await client.post(promoters_url(world.event.id), json={"promoter_id": str(uuid.uuid4())})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_401(client, world):
    r = await client.get(promoters_url(world.event.id), headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_outsider_gets_403_and_no_row(client, db, world):
    promoter = await create_promoter(db, email="pat@example.com")
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id)},
        headers=auth_headers(world.outsider),
    )

    assert r.status_code == 403
    assert r.json() == {"detail": "Forbidden"}
    assert await count_assignments(db, world.event.id) == 0


@pytest.mark.asyncio
async def test_outsider_cannot_list(client, world):
    r = await client.get(promoters_url(world.event.id), headers=auth_headers(world.outsider))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_unknown_event_is_404(client, db, world):
    admin = await create_user(db, "root@example.com")
    await grant(db, admin, UserRoleName.SUPERADMIN)
    await db.commit()

    r = await client.post(
        promoters_url(uuid.uuid4()),
        json={"user_id": str(world.outsider.id)},
        headers=auth_headers(admin),
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_superadmin_can_assign_without_attribution(client, db, world):
    admin = await create_user(db, "root@example.com")
    await grant(db, admin, UserRoleName.SUPERADMIN)
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id)},
        headers=auth_headers(admin),
    )

    assert r.status_code == 200
    # neither venue nor organizer => storage default
    assert r.json()["eventPromoter"]["assigned_by"] == "organizer"


# ---------------------------------------------------------
# Promoter resolution through the API
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_assign_by_user_id_creates_promoter(client, db, world, email_sender):
    member = await create_user(db, "Dana.Doe@example.com", full_name="Dana D")
    await create_attendee(db, member, "  Dana   Doe ")
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"user_id": str(member.id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    ep = body["eventPromoter"]
    assert ep["promoter"]["name"] == "Dana Doe"
    assert ep["assigned_by"] == "organizer"
    assert ep["commission_type"] == "flat_per_head"
    assert ep["commission_config"] == {"amount_per_head": 0}

    promoter = (
        await db.execute(select(Promoter).where(Promoter.linked_user_id == member.id))
    ).scalar_one()
    assert str(promoter.id) == ep["promoter_id"]
    assert promoter.created_by == member.id

    roles = (await db.execute(select(UserRole.role).where(UserRole.user_id == member.id))).scalars().all()
    assert roles == ["promoter"]

    assert len(email_sender.welcome_calls) == 1
    assert len(email_sender.assignment_calls) == 1
    details = email_sender.assignment_calls[0]["event_details"]
    assert details.referral_link == f"http://localhost:3000/e/{world.event.slug}?ref={promoter.id}"
    assert details.venue_name == "The Basement"


@pytest.mark.asyncio
async def test_user_without_attendee_falls_back_to_email_local_part(client, db, world):
    member = await create_user(db, "night.crawler@example.com")
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"user_id": str(member.id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert r.json()["eventPromoter"]["promoter"]["name"] == "night.crawler"


@pytest.mark.asyncio
async def test_assign_by_user_id_reuses_existing_promoter(client, db, world):
    member = await create_user(db, "repeat@example.com")
    existing = await create_promoter(db, name="Repeat Rita", created_by=member.id)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"user_id": str(member.id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert r.json()["eventPromoter"]["promoter_id"] == str(existing.id)
    total = (await db.execute(select(func.count(Promoter.id)))).scalar_one()
    assert total == 1


@pytest.mark.asyncio
async def test_assign_by_user_id_prefers_linked_promoter_over_legacy(client, db, world):
    member = await create_user(db, "split@example.com")
    legacy = await create_promoter(
        db,
        name="Legacy",
        created_by=member.id,
        created_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )
    linked = await create_promoter(db, name="Linked", linked_user_id=member.id)
    await db.commit()
    member_id, legacy_id, linked_id = member.id, legacy.id, linked.id

    r = await client.post(
        promoters_url(world.event.id),
        json={"user_id": str(member_id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert r.json()["eventPromoter"]["promoter_id"] == str(linked_id)

    linked_count = (
        await db.execute(select(func.count(Promoter.id)).where(Promoter.linked_user_id == member_id))
    ).scalar_one()
    assert linked_count == 1
    legacy_link = (
        await db.execute(select(Promoter.linked_user_id).where(Promoter.id == legacy_id))
    ).scalar_one()
    assert legacy_link is None


@pytest.mark.asyncio
async def test_same_user_on_two_events_reuses_one_promoter(client, db, world, email_sender):
    member = await create_user(db, "twice@example.com")
    second_event = await create_event(db, world.organizer, world.venue)
    await db.commit()
    headers = auth_headers(world.organizer_owner)

    r1 = await client.post(promoters_url(world.event.id), json={"user_id": str(member.id)}, headers=headers)
    r2 = await client.post(promoters_url(second_event.id), json={"user_id": str(member.id)}, headers=headers)

    assert r1.status_code == 200
    assert r2.status_code == 200
    assert r1.json()["eventPromoter"]["promoter_id"] == r2.json()["eventPromoter"]["promoter_id"]

    total = (await db.execute(select(func.count(Promoter.id)))).scalar_one()
    assert total == 1
    assert len(email_sender.welcome_calls) == 1
    assert len(email_sender.assignment_calls) == 2


@pytest.mark.asyncio
async def test_missing_identifiers_is_400(client, world):
    r = await client.post(
        promoters_url(world.event.id),
        json={"per_head_rate": 10},
        headers=auth_headers(world.organizer_owner),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Either promoter_id or user_id is required"


@pytest.mark.asyncio
async def test_unknown_promoter_and_user_are_404(client, world):
    headers = auth_headers(world.organizer_owner)

    r = await client.post(promoters_url(world.event.id), json={"promoter_id": str(uuid.uuid4())}, headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Promoter not found"

    r = await client.post(promoters_url(world.event.id), json={"user_id": str(uuid.uuid4())}, headers=headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "User not found"


# ---------------------------------------------------------
# Commission terms
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_template_merge_and_blank_override(client, db, world):
    template = await create_template(
        db,
        world.organizer,
        per_head_rate=Decimal("10"),
        fixed_fee=Decimal("200"),
        minimum_guests=50,
        below_minimum_percent=50,
    )
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={
            "promoter_id": str(promoter.id),
            "template_id": str(template.id),
            "fixed_fee": "",
            "per_head_max": "100",
        },
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    ep = r.json()["eventPromoter"]
    assert Decimal(ep["per_head_rate"]) == Decimal("10")
    assert ep["fixed_fee"] is None
    assert ep["per_head_max"] == 100
    assert ep["minimum_guests"] == 50
    assert ep["below_minimum_percent"] == 50
    assert ep["commission_type"] == "enhanced"


@pytest.mark.asyncio
async def test_template_from_other_organizer_is_ignored(client, db, world):
    other_owner = await create_user(db, "rival@example.com")
    rival = await create_organizer(db, other_owner, name="Rival Nights")
    template = await create_template(db, rival, per_head_rate=Decimal("99"))
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "template_id": str(template.id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    ep = r.json()["eventPromoter"]
    assert ep["per_head_rate"] is None
    assert ep["commission_type"] == "flat_per_head"


@pytest.mark.asyncio
async def test_enhanced_type_from_bonus_tiers(client, db, world, email_sender):
    promoter = await create_promoter(db, email="tiers@example.com")
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={
            "promoter_id": str(promoter.id),
            "bonus_tiers": [
                {"threshold": 25, "amount": 50, "repeatable": True, "label": "every 25"},
                {"threshold": 100, "amount": "250"},
            ],
        },
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    ep = r.json()["eventPromoter"]
    assert ep["commission_type"] == "enhanced"
    assert ep["bonus_tiers"] == [
        {"threshold": 25, "amount": "50.00", "repeatable": True, "label": "every 25"},
        {"threshold": 100, "amount": "250.00", "repeatable": False},
    ]
    assert email_sender.assignment_calls[0]["commission_terms"]["commission_type"] == "enhanced"


@pytest.mark.asyncio
async def test_flat_type_when_only_currency_is_sent(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "currency": "eur"},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    ep = r.json()["eventPromoter"]
    assert ep["commission_type"] == "flat_per_head"
    assert ep["currency"] == "EUR"


@pytest.mark.asyncio
async def test_malformed_number_is_400_and_no_row(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "per_head_rate": "ten dollars"},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 400
    assert r.json()["detail"] == "per_head_rate must be a number"
    assert await count_assignments(db, world.event.id) == 0


@pytest.mark.asyncio
async def test_out_of_range_terms_are_400_and_no_row(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()
    headers = auth_headers(world.organizer_owner)

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "fixed_fee": -50},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "fixed_fee must not be negative"

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "below_minimum_percent": 150},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "below_minimum_percent must be at most 100"

    assert await count_assignments(db, world.event.id) == 0


@pytest.mark.asyncio
async def test_invalid_assigned_by_is_400(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "assigned_by": "headliner"},
        headers=auth_headers(world.organizer_owner),
    )
    assert r.status_code == 400


# ---------------------------------------------------------
# Attribution + conflicts + best-effort email
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_venue_admin_assignment_is_attributed_to_venue(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id)},
        headers=auth_headers(world.venue_admin),
    )

    assert r.status_code == 200
    assert r.json()["eventPromoter"]["assigned_by"] == "venue"


@pytest.mark.asyncio
async def test_duplicate_is_409_with_single_row(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()
    headers = auth_headers(world.organizer_owner)

    first = await client.post(promoters_url(world.event.id), json={"promoter_id": str(promoter.id)}, headers=headers)
    second = await client.post(promoters_url(world.event.id), json={"promoter_id": str(promoter.id)}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["detail"] == "Promoter is already assigned to this event"
    assert await count_assignments(db, world.event.id) == 1


@pytest.mark.asyncio
async def test_email_failure_still_returns_200(client, db, world, email_sender):
    email_sender.fail = True
    promoter = await create_promoter(db, email="pat@example.com")
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert await count_assignments(db, world.event.id) == 1


@pytest.mark.asyncio
async def test_welcome_failure_still_sends_assignment_email(client, db, world, email_sender, caplog):
    email_sender.fail_welcome = True
    promoter = await create_promoter(db, email="pat@example.com")
    await db.commit()
    caplog.set_level(logging.WARNING, logger="app.services.promoter_assignment")

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id)},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert email_sender.welcome_calls == []
    assert len(email_sender.assignment_calls) == 1
    messages = [rec.getMessage() for rec in caplog.records]
    assert "promoter_welcome_email_failed" in messages
    assert "assignment_email_failed" not in messages


@pytest.mark.asyncio
async def test_welcome_email_only_on_first_assignment(client, db, world, email_sender):
    promoter = await create_promoter(db, email="pat@example.com")
    second_event = await create_event(db, world.organizer, world.venue)
    await db.commit()
    headers = auth_headers(world.organizer_owner)

    r1 = await client.post(promoters_url(world.event.id), json={"promoter_id": str(promoter.id)}, headers=headers)
    r2 = await client.post(promoters_url(second_event.id), json={"promoter_id": str(promoter.id)}, headers=headers)

    assert r1.status_code == 200
    assert r2.status_code == 200
    assert len(email_sender.welcome_calls) == 1
    assert len(email_sender.assignment_calls) == 2


@pytest.mark.asyncio
async def test_assignment_is_audited(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id)},
        headers=auth_headers(world.organizer_owner),
    )
    assert r.status_code == 200

    log = (await db.execute(select(AuditLog).where(AuditLog.action == "PROMOTER_ASSIGNED"))).scalar_one()
    assert str(log.entity_id) == r.json()["eventPromoter"]["id"]
    assert log.user_id == world.organizer_owner.id
    assert log.new_values["promoter_id"] == str(promoter.id)


# ---------------------------------------------------------
# Remove
# ---------------------------------------------------------
async def _assign(client, world, promoter_id, event_id=None) -> str:
    r = await client.post(
        promoters_url(event_id or world.event.id),
        json={"promoter_id": str(promoter_id)},
        headers=auth_headers(world.organizer_owner),
    )
    assert r.status_code == 200
    return r.json()["eventPromoter"]["id"]


@pytest.mark.asyncio
async def test_remove_by_query_param(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()
    ep_id = await _assign(client, world, promoter.id)

    r = await client.delete(
        promoters_url(world.event.id),
        params={"event_promoter_id": ep_id},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert await count_assignments(db, world.event.id) == 0

    log = (await db.execute(select(AuditLog).where(AuditLog.action == "PROMOTER_UNASSIGNED"))).scalar_one()
    assert str(log.entity_id) == ep_id


@pytest.mark.asyncio
async def test_remove_by_json_body(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()
    ep_id = await _assign(client, world, promoter.id)

    r = await client.request(
        "DELETE",
        promoters_url(world.event.id),
        json={"event_promoter_id": ep_id},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 200
    assert await count_assignments(db, world.event.id) == 0


@pytest.mark.asyncio
async def test_remove_without_id_is_400(client, world):
    r = await client.delete(promoters_url(world.event.id), headers=auth_headers(world.organizer_owner))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_remove_from_other_event_is_404(client, db, world):
    promoter = await create_promoter(db)
    other_event = await create_event(db, world.organizer)
    await db.commit()
    ep_id = await _assign(client, world, promoter.id)

    r = await client.delete(
        promoters_url(other_event.id),
        params={"event_promoter_id": ep_id},
        headers=auth_headers(world.organizer_owner),
    )

    assert r.status_code == 404
    assert await count_assignments(db, world.event.id) == 1


@pytest.mark.asyncio
async def test_outsider_cannot_remove(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()
    ep_id = await _assign(client, world, promoter.id)

    r = await client.delete(
        promoters_url(world.event.id),
        params={"event_promoter_id": ep_id},
        headers=auth_headers(world.outsider),
    )

    assert r.status_code == 403
    assert await count_assignments(db, world.event.id) == 1


# ---------------------------------------------------------
# List + payout estimate
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_list_includes_registration_counts(client, db, world):
    busy = await create_promoter(db, name="Busy Bee")
    quiet = await create_promoter(db, name="Quiet Quinn")
    await db.commit()
    await _assign(client, world, busy.id)
    await _assign(client, world, quiet.id)

    for _ in range(3):
        db.add(Registration(event_id=world.event.id, referral_promoter_id=busy.id))
    await db.commit()

    r = await client.get(promoters_url(world.event.id), headers=auth_headers(world.organizer_owner))

    assert r.status_code == 200
    by_name = {p["promoter"]["name"]: p for p in r.json()["promoters"]}
    assert by_name["Busy Bee"]["registrations"] == 3
    assert by_name["Quiet Quinn"]["registrations"] == 0


@pytest.mark.asyncio
async def test_payout_estimate_uses_checkins(client, db, world):
    promoter = await create_promoter(db)
    await db.commit()

    r = await client.post(
        promoters_url(world.event.id),
        json={"promoter_id": str(promoter.id), "per_head_rate": "5", "fixed_fee": "100"},
        headers=auth_headers(world.organizer_owner),
    )
    ep_id = r.json()["eventPromoter"]["id"]

    checked_in = datetime(2026, 3, 14, 22, 0, tzinfo=timezone.utc)
    for i in range(4):
        db.add(
            Registration(
                event_id=world.event.id,
                referral_promoter_id=promoter.id,
                checked_in_at=checked_in if i < 3 else None,
            )
        )
    await db.commit()

    url = f"{promoters_url(world.event.id)}/{ep_id}/payout-estimate"
    headers = auth_headers(world.organizer_owner)

    actual = await client.get(url, headers=headers)
    assert actual.status_code == 200
    body = actual.json()
    assert body["checkins"] == 3
    assert Decimal(body["final_payout"]) == Decimal("115")
    assert body["currency"] == "USD"
    assert body["summary"] == "3 check-ins × $5 = $15 + Fixed fee: $100"

    what_if = await client.get(url, params={"checkins": 10}, headers=headers)
    assert Decimal(what_if.json()["final_payout"]) == Decimal("150")


# ---------------------------------------------------------
# Identity
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_me_lists_roles(client, db, world):
    await grant(db, world.venue_admin, UserRoleName.VENUE_ADMIN)
    await db.commit()

    r = await client.get("/api/v1/auth/me", headers=auth_headers(world.venue_admin))

    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "venue@example.com"
    assert body["roles"] == ["venue_admin"]
