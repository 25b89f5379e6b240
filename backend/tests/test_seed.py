import importlib.util
from datetime import date
from decimal import Decimal
from pathlib import Path

from sqlalchemy import func, select

from holidayhouse.db import crud_fees
from holidayhouse.db.models import BookingSource, FeeConfig, Room, SeasonalRate, User
from holidayhouse.schemas.fees import FeeInput, GuestBreakdown
from holidayhouse.services.fees import calculate_fees

SEED_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "seed.py"


def _load_seed():
    spec = importlib.util.spec_from_file_location("seed_script", SEED_SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def _count(db, column):
    res = await db.execute(select(func.count(column)))
    return res.scalar_one()


async def test_seed_is_idempotent(db):
    seed = _load_seed()
    await seed.seed(db)
    await seed.seed(db)

    assert await _count(db, FeeConfig.id) == 1
    assert await _count(db, SeasonalRate.id) == 1
    assert await _count(db, Room.id) == 4
    assert await _count(db, User.id) == 2


async def test_seeded_peak_season_prices_december(db):
    await _load_seed().seed(db)

    config, rates = await crud_fees.get_active_fee_config(db, date(2031, 12, 20))
    breakdown = calculate_fees(
        FeeInput(
            source=BookingSource.EXTERNAL_PUBLIC,
            start_date=date(2031, 12, 20),
            nights=2,
            counts=GuestBreakdown(visitor_adult=2),
        ),
        config,
        rates,
    )
    assert breakdown.total == Decimal("2000.00")
    assert breakdown.effective_rate_name == "Peak Summer"
