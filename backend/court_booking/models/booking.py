"""
Booking model representing a player's reservation of a court window.

Key design decisions:
- Partial unique index on (court_id, booking_date, start_time, end_time)
  for non-cancelled rows is the hard double-booking guarantee
- Cancellation is a status transition; rows are never deleted
- cancelled, completed and no_show are terminal
- Guest contact is structured (guest_name/email/phone), not folded into notes
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)

from court_booking.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    AWAITING_APPROVAL = "awaiting_approval"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
)


class RefundStatus(str, enum.Enum):
    NONE = "none"
    PARTIAL = "partial"
    REFUNDED = "refunded"


_ACTIVE_SLOT = text("status != 'cancelled'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False)
    # NULL = guest or facility-block booking
    player_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    price_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="CAD")

    requires_approval = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    payment_intent_id = Column(String(255), nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    refund_amount_cents = Column(Integer, nullable=True)
    refund_status = Column(String(20), nullable=True)

    notes = Column(Text, nullable=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)

    __table_args__ = (
        Index(
            "uq_active_booking_slot",
            "court_id",
            "booking_date",
            "start_time",
            "end_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT,
            sqlite_where=_ACTIVE_SLOT,
        ),
        Index("ix_booking_court_date", "court_id", "booking_date"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'awaiting_approval', 'cancelled', 'completed', 'no_show')",
            name="check_booking_status",
        ),
        CheckConstraint("price_cents >= 0", name="check_booking_price_non_negative"),
        CheckConstraint(
            "refund_amount_cents IS NULL OR (refund_amount_cents >= 0 AND refund_amount_cents <= price_cents)",
            name="check_refund_within_price",
        ),
        CheckConstraint(
            "refund_status IS NULL OR refund_status IN ('none', 'partial', 'refunded')",
            name="check_refund_status",
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATUSES}

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, court={self.court_id}, date={self.booking_date}, "
            f"{self.start_time}-{self.end_time}, status={self.status})>"
        )
