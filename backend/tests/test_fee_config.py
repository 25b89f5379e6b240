from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import make_season
from holidayhouse.core.errors import NotFoundError
from holidayhouse.db import crud_fees
from holidayhouse.db.models import FeeConfig


async def _config_count(db):
    res = await db.execute(select(func.count(FeeConfig.id)))
    return res.scalar_one()


async def test_default_config_is_created_on_first_use(db):
    config, rates = await crud_fees.get_active_fee_config(db, date(2025, 3, 1))

    assert config.key == crud_fees.DEFAULT_FEE_CONFIG_KEY
    assert config.member_night_rate == Decimal("50.00")
    assert config.mere_family_night_rate == Decimal("200.00")
    assert config.external_adult_night_rate == Decimal("400.00")
    assert config.currency == "ZAR"
    assert rates == []


async def test_default_config_upsert_is_idempotent(db):
    first, _ = await crud_fees.get_active_fee_config(db, date(2025, 3, 1))
    await crud_fees.ensure_default_fee_config(db)
    await crud_fees.ensure_default_fee_config(db)
    second, _ = await crud_fees.get_active_fee_config(db, date(2030, 1, 1))

    assert first.id == second.id
    assert await _config_count(db) == 1


async def test_read_only_lookup_never_creates(db):
    assert await crud_fees.find_active_fee_config(db, date(2025, 3, 1)) is None
    assert await _config_count(db) == 0


async def test_new_config_closes_the_open_one(db):
    default, _ = await crud_fees.get_active_fee_config(db, date(2025, 3, 1))
    new = await crud_fees.create_fee_config(
        db,
        {"effective_from": date(2025, 6, 1), "member_night_rate": Decimal("60.00")},
        [],
    )
    await db.commit()

    assert default.effective_to == date(2025, 5, 31)
    assert default.is_active is True

    before, _ = await crud_fees.get_active_fee_config(db, date(2025, 5, 31))
    after, _ = await crud_fees.get_active_fee_config(db, date(2025, 6, 1))
    assert before.id == default.id
    assert after.id == new.id
    assert after.member_night_rate == Decimal("60.00")


async def test_new_config_deactivates_later_ones(db):
    later = await crud_fees.create_fee_config(db, {"effective_from": date(2025, 9, 1)}, [])
    earlier = await crud_fees.create_fee_config(db, {"effective_from": date(2025, 6, 1)}, [])
    await db.commit()

    assert later.is_active is False
    found = await crud_fees.find_active_fee_config(db, date(2025, 10, 1))
    assert found.id == earlier.id


async def test_late_default_stops_before_the_configured_history(db):
    configured = await crud_fees.create_fee_config(db, {"effective_from": date(2025, 6, 1)}, [])
    await db.commit()

    default, _ = await crud_fees.get_active_fee_config(db, date(2025, 3, 1))
    assert default.key == crud_fees.DEFAULT_FEE_CONFIG_KEY
    assert default.effective_to == date(2025, 5, 31)

    found, _ = await crud_fees.get_active_fee_config(db, date(2025, 7, 1))
    assert found.id == configured.id
    res = await db.execute(
        select(func.count(FeeConfig.id)).where(
            FeeConfig.is_active.is_(True),
            FeeConfig.effective_from <= date(2025, 7, 1),
            (FeeConfig.effective_to.is_(None)) | (FeeConfig.effective_to >= date(2025, 7, 1)),
        )
    )
    assert res.scalar_one() == 1


async def test_only_enabled_seasonal_rates_are_returned(db):
    config = await crud_fees.create_fee_config(
        db,
        {"effective_from": date(2025, 1, 1)},
        [
            {"name": "Peak Summer", "start_month": 12, "start_day": 1, "end_month": 1, "end_day": 15,
             "priority": 100, "external_adult_night_rate": Decimal("500.00"),
             "external_child_night_rate": Decimal("250.00"), "enabled": True},
            {"name": "Easter", "start_month": 4, "start_day": 1, "end_month": 4, "end_day": 20,
             "priority": 10, "external_adult_night_rate": Decimal("450.00"),
             "external_child_night_rate": Decimal("200.00"), "enabled": False},
        ],
    )
    await db.commit()

    _, rates = await crud_fees.get_active_fee_config(db, date(2025, 12, 20))
    assert [r.name for r in rates] == ["Peak Summer"]
    assert len(config.seasonal_rates) == 2


async def test_peak_season_fixture(db, peak_season_config):
    _, rates = await crud_fees.get_active_fee_config(db, date(2025, 12, 20))
    assert [r.name for r in rates] == [make_season().name]


async def test_update_unknown_config(db):
    with pytest.raises(NotFoundError):
        await crud_fees.update_fee_config(db, 999, {"is_active": False})
