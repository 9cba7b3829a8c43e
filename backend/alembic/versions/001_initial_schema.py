"""Initial schema: organizations, facilities, courts, availability, bookings, matches.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users (profile mirror of the hosted auth user)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Organizations and membership
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_organizations_id", "organizations", ["id"])

    op.create_table(
        "organization_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'member'")),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
        sa.CheckConstraint("role IN ('owner', 'admin', 'staff', 'member')", name="check_org_member_role"),
    )
    op.create_index("ix_organization_members_organization_id", "organization_members", ["organization_id"])
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"])

    op.create_table(
        "organization_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, unique=True),
        sa.Column("require_booking_approval", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("allow_same_day_booking", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("min_booking_notice_hours", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("max_advance_booking_days", sa.Integer(), nullable=False, server_default=sa.text("30")),
        *_timestamps(),
        sa.CheckConstraint("min_booking_notice_hours >= 0", name="check_booking_notice"),
        sa.CheckConstraint("max_advance_booking_days > 0", name="check_advance_booking"),
    )

    op.create_table(
        "cancellation_policies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, unique=True),
        sa.Column("free_cancellation_hours", sa.Integer(), nullable=False, server_default=sa.text("24")),
        sa.Column("partial_refund_hours", sa.Integer(), nullable=False, server_default=sa.text("12")),
        sa.Column("partial_refund_percent", sa.Integer(), nullable=False, server_default=sa.text("50")),
        sa.Column("no_refund_hours", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint(
            "free_cancellation_hours >= partial_refund_hours AND partial_refund_hours >= no_refund_hours",
            name="check_cancellation_hours",
        ),
        sa.CheckConstraint(
            "partial_refund_percent >= 0 AND partial_refund_percent <= 100",
            name="check_refund_percent",
        ),
    )

    op.create_table(
        "payment_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, unique=True),
        sa.Column("provider_account_id", sa.String(255), nullable=False),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("charges_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payouts_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("default_currency", sa.String(3), nullable=False, server_default=sa.text("'CAD'")),
        *_timestamps(),
    )

    op.create_table(
        "player_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("blocked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "player_id", name="uq_player_block"),
    )

    # Facilities and courts
    op.create_table(
        "facilities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default=sa.text("'UTC'")),
        *_timestamps(),
    )
    op.create_index("ix_facilities_id", "facilities", ["id"])
    op.create_index("ix_facilities_organization_id", "facilities", ["organization_id"])

    op.create_table(
        "courts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("default_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("availability_status", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("default_price_cents >= 0", name="check_court_price_non_negative"),
        sa.CheckConstraint(
            "availability_status IS NULL OR availability_status IN "
            "('available', 'maintenance', 'closed', 'reserved')",
            name="check_court_availability_status",
        ),
    )
    op.create_index("ix_courts_id", "courts", ["id"])
    op.create_index("ix_courts_facility_id", "courts", ["facility_id"])

    # Availability sources
    op.create_table(
        "availability_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id"), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_template_day_of_week"),
        sa.CheckConstraint("slot_duration_minutes > 0", name="check_template_slot_duration"),
        sa.CheckConstraint("end_time > start_time", name="check_template_window"),
    )
    op.create_index("ix_template_facility_day", "availability_templates", ["facility_id", "day_of_week"])

    op.create_table(
        "availability_overrides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id"), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=True),
        sa.Column("override_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("slot_duration_minutes > 0", name="check_override_slot_duration"),
        sa.CheckConstraint("end_time > start_time", name="check_override_window"),
    )
    op.create_index("ix_override_facility_date", "availability_overrides", ["facility_id", "override_date"])

    op.create_table(
        "availability_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id"), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=True),
        sa.Column("block_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("block_type", sa.String(30), nullable=False, server_default=sa.text("'maintenance'")),
        *_timestamps(),
    )
    op.create_index("ix_block_facility_date", "availability_blocks", ["facility_id", "block_date"])

    op.create_table(
        "pricing_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facilities.id"), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=True),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("price_cents >= 0", name="check_pricing_rule_price"),
    )

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'CAD'")),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("refund_amount_cents", sa.Integer(), nullable=True),
        sa.Column("refund_status", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("guest_name", sa.String(255), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(50), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'awaiting_approval', 'cancelled', 'completed', 'no_show')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("price_cents >= 0", name="check_booking_price_non_negative"),
        sa.CheckConstraint(
            "refund_amount_cents IS NULL OR (refund_amount_cents >= 0 AND refund_amount_cents <= price_cents)",
            name="check_refund_within_price",
        ),
        sa.CheckConstraint(
            "refund_status IS NULL OR refund_status IN ('none', 'partial', 'refunded')",
            name="check_refund_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_organization_id", "bookings", ["organization_id"])
    op.create_index("ix_bookings_player_id", "bookings", ["player_id"])
    op.create_index("ix_booking_court_date", "bookings", ["court_id", "booking_date"])
    # NO DOUBLE-BOOKING: at most one live booking per court window.
    # Cancelled rows stay in the table, so the index is partial.
    op.create_index(
        "uq_active_booking_slot",
        "bookings",
        ["court_id", "booking_date", "start_time", "end_time"],
        unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
    )

    # Matches
    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("match_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default=sa.text("'UTC'")),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("result", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_matches_id", "matches", ["id"])


def downgrade() -> None:
    op.drop_table("matches")
    op.drop_index("uq_active_booking_slot", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("pricing_rules")
    op.drop_table("availability_blocks")
    op.drop_table("availability_overrides")
    op.drop_table("availability_templates")
    op.drop_table("courts")
    op.drop_table("facilities")
    op.drop_table("player_blocks")
    op.drop_table("payment_accounts")
    op.drop_table("cancellation_policies")
    op.drop_table("organization_settings")
    op.drop_table("organization_members")
    op.drop_table("organizations")
    op.drop_table("users")
