"""
Player-vs-player match. There is deliberately no status column: the live
status is derived from cancelled_at, result and the time window on read.
"""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, Time

from court_booking.db.base import Base, TimestampMixin


class Match(Base, TimestampMixin):
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    match_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    result = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, date={self.match_date}, {self.start_time}-{self.end_time})>"
