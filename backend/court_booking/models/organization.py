"""
Organization-level data the booking engine reads: membership roles, booking
settings, cancellation policy, payment account and player blocks.

Key design decisions:
- Settings, policy and payment account are one-per-organization rows
  (unique organization_id); a missing row means "use the defaults".
- Cancellation policy bands are data, never hardcoded in the engine.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from court_booking.db.base import Base, TimestampMixin

STAFF_ROLES = frozenset({"owner", "admin", "staff"})
ADMIN_ROLES = frozenset({"owner", "admin"})


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug})>"


class OrganizationMember(Base, TimestampMixin):
    __tablename__ = "organization_members"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")
    left_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
        CheckConstraint(
            "role IN ('owner', 'admin', 'staff', 'member')",
            name="check_org_member_role",
        ),
    )


class OrganizationSettings(Base, TimestampMixin):
    __tablename__ = "organization_settings"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    require_booking_approval = Column(Boolean, nullable=False, default=False)
    allow_same_day_booking = Column(Boolean, nullable=False, default=True)
    min_booking_notice_hours = Column(Integer, nullable=False, default=1)
    max_advance_booking_days = Column(Integer, nullable=False, default=30)

    __table_args__ = (
        CheckConstraint("min_booking_notice_hours >= 0", name="check_booking_notice"),
        CheckConstraint("max_advance_booking_days > 0", name="check_advance_booking"),
    )


class CancellationPolicy(Base, TimestampMixin):
    __tablename__ = "cancellation_policies"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    free_cancellation_hours = Column(Integer, nullable=False, default=24)
    partial_refund_hours = Column(Integer, nullable=False, default=12)
    partial_refund_percent = Column(Integer, nullable=False, default=50)
    no_refund_hours = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "free_cancellation_hours >= partial_refund_hours AND partial_refund_hours >= no_refund_hours",
            name="check_cancellation_hours",
        ),
        CheckConstraint(
            "partial_refund_percent >= 0 AND partial_refund_percent <= 100",
            name="check_refund_percent",
        ),
    )


class PaymentAccount(Base, TimestampMixin):
    """Connected payment-provider account that receives an organization's charges."""

    __tablename__ = "payment_accounts"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    provider_account_id = Column(String(255), nullable=False)
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    charges_enabled = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False)
    default_currency = Column(String(3), nullable=False, default="CAD")


class PlayerBlock(Base, TimestampMixin):
    __tablename__ = "player_blocks"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason = Column(Text, nullable=True)
    blocked_until = Column(DateTime(timezone=True), nullable=True)  # NULL = permanent
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "player_id", name="uq_player_block"),
    )
