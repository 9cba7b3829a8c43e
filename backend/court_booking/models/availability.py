"""
Availability sources consumed by the slot resolver.

Key design decisions:
- court_id is nullable on every table here: NULL scopes the row to the whole
  facility, a value scopes it to one court. Court-specific rows win.
- Templates recur weekly (day_of_week 0 = Monday); overrides apply to one
  calendar date and replace template slots for the same window.
- Blocks with NULL start/end close the whole day.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)

from court_booking.db.base import Base, TimestampMixin


class AvailabilityTemplate(Base, TimestampMixin):
    __tablename__ = "availability_templates"

    id = Column(Integer, primary_key=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=60)
    price_cents = Column(Integer, nullable=True)
    valid_from = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_template_facility_day", "facility_id", "day_of_week"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_template_day_of_week"),
        CheckConstraint("slot_duration_minutes > 0", name="check_template_slot_duration"),
        CheckConstraint("end_time > start_time", name="check_template_window"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityTemplate(id={self.id}, court={self.court_id}, "
            f"day={self.day_of_week}, {self.start_time}-{self.end_time})>"
        )


class AvailabilityOverride(Base, TimestampMixin):
    """One-time slot window for a single date. is_available=False closes the window."""

    __tablename__ = "availability_overrides"

    id = Column(Integer, primary_key=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True)
    override_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=60)
    price_cents = Column(Integer, nullable=True)
    reason = Column(Text, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_override_facility_date", "facility_id", "override_date"),
        CheckConstraint("slot_duration_minutes > 0", name="check_override_slot_duration"),
        CheckConstraint("end_time > start_time", name="check_override_window"),
    )


class AvailabilityBlock(Base, TimestampMixin):
    __tablename__ = "availability_blocks"

    id = Column(Integer, primary_key=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True)
    block_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(Text, nullable=True)
    block_type = Column(String(30), nullable=False, default="maintenance")

    __table_args__ = (
        Index("ix_block_facility_date", "facility_id", "block_date"),
    )

    @property
    def is_whole_day(self) -> bool:
        return self.start_time is None or self.end_time is None


class PricingRule(Base, TimestampMixin):
    __tablename__ = "pricing_rules"

    id = Column(Integer, primary_key=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True)
    name = Column(String(120), nullable=True)
    days_of_week = Column(JSON, nullable=False, default=list)  # [0..6], 0 = Monday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    price_cents = Column(Integer, nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    valid_from = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="check_pricing_rule_price"),
    )
