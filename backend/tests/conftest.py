"""
Pytest fixtures for test database, client, payments and authentication.

Each test gets a fresh in-memory SQLite database (aiosqlite + StaticPool so
every connection sees the same memory), an in-memory payment provider that
records calls, and a fixed request clock.
"""

import os

# Must be set before the app (and its cached settings) is imported.
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import AsyncGenerator, Optional

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from court_booking.api.deps import get_now
from court_booking.core.exceptions import PaymentProviderException
from court_booking.core.security import create_access_token
from court_booking.db.base import Base
from court_booking.db.session import get_db
from court_booking.main import app
from court_booking.models import (
    AvailabilityTemplate,
    Court,
    Facility,
    Organization,
    OrganizationMember,
    PaymentAccount,
    User,
)
from court_booking.services.interfaces.payment import (
    AccountStatus,
    PaymentAuthorization,
    PaymentProvider,
    PaymentReversal,
)
from court_booking.services.payment_factory import get_payment_provider

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Sunday 2025-06-01 12:00 UTC (08:00 in Toronto)
FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
# Tuesday
BOOKING_DAY = "2025-06-10"
TUESDAY = 1


class FakePaymentProvider(PaymentProvider):
    """Records every call; `fail_on` names operations that should raise."""

    def __init__(self):
        self.authorizations = []
        self.reversals = []
        self.cancellations = []
        self.account_lookups = []
        self.account_status = AccountStatus(onboarding_complete=True, charges_enabled=True, payouts_enabled=True)
        self.fail_on = set()
        self.void_reversals = False

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise PaymentProviderException(f"{operation} failed at the provider")

    async def create_authorization(self, amount_cents, currency, destination_account,
                                   application_fee_percent, metadata=None):
        self._maybe_fail("authorize")
        intent_id = f"pi_test_{len(self.authorizations) + 1}"
        self.authorizations.append({
            "payment_intent_id": intent_id,
            "amount_cents": amount_cents,
            "currency": currency,
            "destination_account": destination_account,
            "application_fee_percent": application_fee_percent,
            "metadata": metadata or {},
        })
        return PaymentAuthorization(payment_intent_id=intent_id, client_secret=f"{intent_id}_secret")

    async def reverse_authorization(self, payment_intent_id, amount_cents):
        self._maybe_fail("reverse")
        self.reversals.append((payment_intent_id, amount_cents))
        if self.void_reversals:
            return PaymentReversal(refund_id=None, status="canceled", amount_cents=0)
        return PaymentReversal(
            refund_id=f"re_test_{len(self.reversals)}", status="succeeded", amount_cents=amount_cents
        )

    async def cancel_authorization(self, payment_intent_id):
        self.cancellations.append(payment_intent_id)
        self._maybe_fail("cancel")

    async def get_account_status(self, account_id):
        self._maybe_fail("account_status")
        self.account_lookups.append(account_id)
        return self.account_status


@dataclass
class World:
    """Seeded organization with one court open 09:00-17:00 on Tuesdays at 2000 cents."""

    organization_id: int
    facility_id: int
    court_id: int
    player_id: int
    other_player_id: int
    owner_id: int
    admin_id: int
    staff_id: int
    facility: Facility
    court: Court
    payment_account: Optional[PaymentAccount]


def auth_headers_for(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id)})}"}


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def payments() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, payments: FakePaymentProvider) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB, payment provider and clock overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: payments
    app.dependency_overrides[get_now] = lambda: FIXED_NOW

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(session: AsyncSession, *objects):
    session.add_all(objects)
    await session.commit()
    for obj in objects:
        await session.refresh(obj)
    return objects


@pytest_asyncio.fixture
async def world(db_session: AsyncSession) -> World:
    player, other, owner, admin, staff = await _add(
        db_session,
        User(email="player@example.com", full_name="Pat Player", is_active=True),
        User(email="other@example.com", full_name="Olive Other", is_active=True),
        User(email="owner@example.com", full_name="Owen Owner", is_active=True),
        User(email="admin@example.com", full_name="Ada Admin", is_active=True),
        User(email="staff@example.com", full_name="Stu Staff", is_active=True),
    )
    (org,) = await _add(db_session, Organization(name="Riverside Tennis", slug="riverside"))
    await _add(
        db_session,
        OrganizationMember(organization_id=org.id, user_id=owner.id, role="owner"),
        OrganizationMember(organization_id=org.id, user_id=admin.id, role="admin"),
        OrganizationMember(organization_id=org.id, user_id=staff.id, role="staff"),
        OrganizationMember(organization_id=org.id, user_id=player.id, role="member"),
    )
    (facility,) = await _add(
        db_session, Facility(organization_id=org.id, name="Riverside Club", timezone="America/Toronto")
    )
    (court,) = await _add(
        db_session,
        Court(facility_id=facility.id, name="Court 1", default_price_cents=1000, is_active=True),
    )
    await _add(
        db_session,
        AvailabilityTemplate(
            facility_id=facility.id,
            court_id=court.id,
            day_of_week=TUESDAY,
            start_time=time(9, 0),
            end_time=time(17, 0),
            slot_duration_minutes=60,
            price_cents=2000,
            is_available=True,
        ),
    )
    (account,) = await _add(
        db_session,
        PaymentAccount(
            organization_id=org.id,
            provider_account_id="acct_riverside",
            onboarding_complete=True,
            charges_enabled=True,
            payouts_enabled=True,
            default_currency="CAD",
        ),
    )

    return World(
        organization_id=org.id,
        facility_id=facility.id,
        court_id=court.id,
        player_id=player.id,
        other_player_id=other.id,
        owner_id=owner.id,
        admin_id=admin.id,
        staff_id=staff.id,
        facility=facility,
        court=court,
        payment_account=account,
    )
