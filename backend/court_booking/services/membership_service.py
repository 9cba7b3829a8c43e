"""
Actor identity and organization role lookup.

The booking services trust the actor they are given; the API layer builds it
from the verified token and the caller's membership in the booking's
organization.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.models.organization import ADMIN_ROLES, STAFF_ROLES, OrganizationMember


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Optional[str] = None  # None = not a member of the organization

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_member_role(db: AsyncSession, organization_id: int, user_id: int) -> Optional[str]:
    result = await db.execute(
        select(OrganizationMember.role).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
            OrganizationMember.left_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def resolve_actor(db: AsyncSession, user_id: int, organization_id: int) -> Actor:
    return Actor(user_id=user_id, role=await get_member_role(db, organization_id, user_id))
