# scripts/seed.py
import asyncio
from decimal import Decimal

from sqlalchemy import select

from holidayhouse.core.rbac import UserRole
from holidayhouse.db.base import Base
from holidayhouse.db.session import AsyncSessionLocal, engine
from holidayhouse.db.models import Room, SeasonalRate, User
from holidayhouse.db import crud_fees

ROOMS = [
    ('MAIN-01', 'Main bedroom', 2),
    ('FAM-02', 'Family room', 4),
    ('TWIN-03', 'Twin room', 2),
    ('BUNK-04', 'Bunk room', 6),
]

USERS = [
    ('Admin', 'admin@example.com', UserRole.SUPER_ADMIN),
    ('Family Member', 'member@example.com', UserRole.FAMILY_MEMBER),
]

PEAK_SEASON = 'Peak Summer'


async def seed(db):
    # default fee configuration (no-op if it exists)
    await crud_fees.ensure_default_fee_config(db)
    config = await crud_fees.get_fee_config_by_key(db, crud_fees.DEFAULT_FEE_CONFIG_KEY)

    if not any(rate.name == PEAK_SEASON for rate in config.seasonal_rates):
        config.seasonal_rates.append(SeasonalRate(
            name=PEAK_SEASON,
            start_month=12, start_day=1,
            end_month=1, end_day=15,
            priority=100,
            external_adult_night_rate=Decimal('500.00'),
            external_child_night_rate=Decimal('250.00'),
            enabled=True,
        ))

    res = await db.execute(select(Room.code))
    existing_rooms = set(res.scalars().all())
    for code, name, capacity in ROOMS:
        if code not in existing_rooms:
            db.add(Room(code=code, name=name, capacity=capacity, is_active=True))

    res = await db.execute(select(User.email))
    existing_users = set(res.scalars().all())
    for name, email, role in USERS:
        if email not in existing_users:
            db.add(User(name=name, email=email, role=role, is_active=True))

    await db.commit()


async def main():
    # create tables (if migrations not run)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        await seed(db)
    print('Seed complete')


if __name__ == '__main__':
    asyncio.run(main())
