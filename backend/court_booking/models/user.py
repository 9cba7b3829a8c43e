"""
User profile mirrored from the hosted auth provider.
Credentials live with the provider; the id matches the token's `sub` claim.
"""

from sqlalchemy import Column, Integer, String, Boolean

from court_booking.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
