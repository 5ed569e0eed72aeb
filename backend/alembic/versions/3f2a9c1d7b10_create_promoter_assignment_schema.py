"""create promoter assignment schema

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-03-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f2a9c1d7b10"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _user_fk(name: str, ondelete: str = "SET NULL", nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
    )


def _term_columns() -> list[sa.Column]:
    # Shared by event_promoters and promoter_payout_templates
    return [
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("per_head_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("per_head_min", sa.Integer(), nullable=True),
        sa.Column("per_head_max", sa.Integer(), nullable=True),
        sa.Column("bonus_threshold", sa.Integer(), nullable=True),
        sa.Column("bonus_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("bonus_tiers", postgresql.JSONB(), nullable=True),
        sa.Column("fixed_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("minimum_guests", sa.Integer(), nullable=True),
        sa.Column("below_minimum_percent", sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    # -----------------------------------------------------
    # 1) Identity
    # -----------------------------------------------------
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    # case-insensitive lookups used when linking promoters to accounts
    op.create_index("ix_users_email_lower", "users", [sa.text("lower(email)")])

    op.create_table(
        "user_roles",
        _uuid_pk(),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("assigned_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_via", sa.String(length=40), nullable=True),
        sa.Column("promoter_id", postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "attendees",
        _uuid_pk(),
        _user_fk("user_id"),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        _created_at(),
    )
    op.create_index("ix_attendees_user_id", "attendees", ["user_id"])
    op.create_index("ix_attendees_email", "attendees", ["email"])

    # -----------------------------------------------------
    # 2) Organizers, venues, events
    # -----------------------------------------------------
    op.create_table(
        "organizers",
        _uuid_pk(),
        sa.Column("name", sa.String(length=200), nullable=False),
        _user_fk("created_by"),
        _created_at(),
    )
    op.create_index("ix_organizers_created_by", "organizers", ["created_by"])

    op.create_table(
        "organizer_users",
        _uuid_pk(),
        sa.Column(
            "organizer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.UniqueConstraint("organizer_id", "user_id", name="uq_organizer_users_organizer_user"),
    )
    op.create_index("ix_organizer_users_user_id", "organizer_users", ["user_id"])

    op.create_table(
        "venues",
        _uuid_pk(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("address", sa.String(length=300), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("state", sa.String(length=120), nullable=True),
        _user_fk("created_by"),
        _created_at(),
    )

    op.create_table(
        "venue_users",
        _uuid_pk(),
        sa.Column(
            "venue_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("venues.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.UniqueConstraint("venue_id", "user_id", name="uq_venue_users_venue_user"),
    )
    op.create_index("ix_venue_users_user_id", "venue_users", ["user_id"])

    op.create_table(
        "events",
        _uuid_pk(),
        sa.Column(
            "organizer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "venue_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("venues.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("flier_url", sa.String(length=500), nullable=True),
        _created_at(),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_venue_id", "events", ["venue_id"])
    op.create_index("ix_events_slug", "events", ["slug"], unique=True)

    # -----------------------------------------------------
    # 3) Promoters
    # -----------------------------------------------------
    op.create_table(
        "promoters",
        _uuid_pk(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        _user_fk("linked_user_id"),
        _user_fk("created_by"),
        _created_at(),
    )
    op.create_index("ix_promoters_email", "promoters", ["email"])
    op.create_index("ix_promoters_linked_user_id", "promoters", ["linked_user_id"], unique=True)
    op.create_index("ix_promoters_created_by", "promoters", ["created_by"])

    op.create_table(
        "promoter_onboarding_sent",
        sa.Column(
            "promoter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("promoters.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("sent_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "promoter_payout_templates",
        _uuid_pk(),
        sa.Column(
            "organizer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False, server_default="Default"),
        *_term_columns(),
        _created_at(),
    )
    op.create_index("ix_promoter_payout_templates_organizer_id", "promoter_payout_templates", ["organizer_id"])

    # -----------------------------------------------------
    # 4) Assignments + registrations
    # -----------------------------------------------------
    op.create_table(
        "event_promoters",
        _uuid_pk(),
        sa.Column(
            "event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "promoter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("promoters.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("commission_type", sa.String(length=20), nullable=False, server_default="flat_per_head"),
        sa.Column("commission_config", postgresql.JSONB(), nullable=True),
        *_term_columns(),
        sa.Column("assigned_by", sa.String(length=20), nullable=False, server_default="organizer"),
        _created_at(),
        sa.UniqueConstraint("event_id", "promoter_id", name="uq_event_promoters_event_promoter"),
    )
    op.create_index("ix_event_promoters_event_id", "event_promoters", ["event_id"])
    op.create_index("ix_event_promoters_promoter_id", "event_promoters", ["promoter_id"])

    op.create_table(
        "registrations",
        _uuid_pk(),
        sa.Column(
            "event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "attendee_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("attendees.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "referral_promoter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("promoters.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_registrations_event_id", "registrations", ["event_id"])
    op.create_index("ix_registrations_event_referral", "registrations", ["event_id", "referral_promoter_id"])

    # -----------------------------------------------------
    # 5) Audit trail
    # -----------------------------------------------------
    op.create_table(
        "audit_logs",
        _uuid_pk(),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("old_values", postgresql.JSONB(), nullable=True),
        sa.Column("new_values", postgresql.JSONB(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "registrations",
        "event_promoters",
        "promoter_payout_templates",
        "promoter_onboarding_sent",
        "promoters",
        "events",
        "venue_users",
        "venues",
        "organizer_users",
        "organizers",
        "attendees",
        "user_roles",
        "users",
    ):
        op.drop_table(table)
