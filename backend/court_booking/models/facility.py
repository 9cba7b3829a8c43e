"""
Facilities and their courts.

Key design decisions:
- The facility owns the IANA timezone; every TIME column below it is
  facility-local wall-clock time.
- Courts are soft-deactivated (is_active) and never hard-deleted while
  bookings reference them.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from court_booking.db.base import Base, TimestampMixin


class Facility(Base, TimestampMixin):
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name={self.name}, tz={self.timezone})>"


class Court(Base, TimestampMixin):
    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    default_price_cents = Column(Integer, nullable=False, default=0)
    # NULL means available
    availability_status = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    facility = relationship("Facility", lazy="joined")

    __table_args__ = (
        CheckConstraint("default_price_cents >= 0", name="check_court_price_non_negative"),
        CheckConstraint(
            "availability_status IS NULL OR availability_status IN "
            "('available', 'maintenance', 'closed', 'reserved')",
            name="check_court_availability_status",
        ),
    )

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active) and self.availability_status in (None, "available")

    def __repr__(self) -> str:
        return f"<Court(id={self.id}, facility={self.facility_id}, name={self.name})>"
