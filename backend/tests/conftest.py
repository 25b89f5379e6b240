# tests/conftest.py
import os

# Settings are read once at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["APPROVER_EMAILS"] = "approver@example.com"
os.environ["APP_BASE_URL"] = "http://holidayhouse.test"
os.environ["SMTP_HOST"] = ""

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from holidayhouse.core.rbac import UserRole  # noqa: E402
from holidayhouse.core.security import create_access_token  # noqa: E402
from holidayhouse.db import crud_fees  # noqa: E402
from holidayhouse.db.base import Base  # noqa: E402
from holidayhouse.db.models import FeeConfig, Room, SeasonalRate, User  # noqa: E402
from holidayhouse.services.notifications import MailSender  # noqa: E402

# policy defaults, spelled out for objects that never get flushed
DEFAULT_RATES = {
    "monthly_member_subscription": Decimal("100.00"),
    "member_night_rate": Decimal("50.00"),
    "dependent_with_member_night_rate": Decimal("25.00"),
    "dependent_without_member_night_rate": Decimal("50.00"),
    "guest_of_member_night_rate": Decimal("50.00"),
    "guest_of_dependent_night_rate": Decimal("25.00"),
    "mere_family_night_rate": Decimal("200.00"),
    "external_adult_night_rate": Decimal("400.00"),
    "external_child_night_rate": Decimal("200.00"),
    "external_whole_house_min_rate": None,
    "currency": "ZAR",
}


def make_fee_config(**overrides) -> FeeConfig:
    values = dict(DEFAULT_RATES)
    values.update(overrides)
    return FeeConfig(**values)


def make_season(name="Peak Summer", start=(12, 1), end=(1, 15), priority=100,
                adult="500.00", child="250.00", enabled=True, id=None) -> SeasonalRate:
    return SeasonalRate(
        id=id,
        name=name,
        start_month=start[0],
        start_day=start[1],
        end_month=end[0],
        end_day=end[1],
        priority=priority,
        external_adult_night_rate=Decimal(adult),
        external_child_night_rate=Decimal(child),
        enabled=enabled,
    )


class RecordingMailSender(MailSender):
    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _add_user(db, name, email, role):
    user = User(name=name, email=email, role=role, is_active=True)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def admin(db):
    return await _add_user(db, "Alice Admin", "admin@example.com", UserRole.SUPER_ADMIN)


@pytest.fixture
async def member(db):
    return await _add_user(db, "Mo Member", "member@example.com", UserRole.FAMILY_MEMBER)


@pytest.fixture
async def other_member(db):
    return await _add_user(db, "Olive Other", "other@example.com", UserRole.FAMILY_MEMBER)


@pytest.fixture
async def guest_user(db):
    return await _add_user(db, "Gus Guest", "guest@example.com", UserRole.GUEST)


@pytest.fixture
async def room(db):
    room = Room(code="MAIN-01", name="Main bedroom", capacity=2, is_active=True)
    db.add(room)
    await db.commit()
    return room


@pytest.fixture
async def peak_season_config(db):
    """The default configuration plus the Dec 1 - Jan 15 peak season."""
    await crud_fees.ensure_default_fee_config(db)
    config = await crud_fees.get_fee_config_by_key(db, crud_fees.DEFAULT_FEE_CONFIG_KEY)
    config.seasonal_rates.append(make_season())
    await db.commit()
    return config


@pytest.fixture
def mail_sender():
    return RecordingMailSender()


def bearer(user) -> dict:
    token = create_access_token({"user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}
