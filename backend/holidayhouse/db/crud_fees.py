# holidayhouse/db/crud_fees.py

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from holidayhouse.core.config import settings
from holidayhouse.core.errors import ConfigurationError, NotFoundError
from holidayhouse.db.models import FeeConfig, SeasonalRate

logger = logging.getLogger(__name__)

DEFAULT_FEE_CONFIG_KEY = "default"
# The fallback row has to cover any booking date
DEFAULT_EFFECTIVE_FROM = date(1970, 1, 1)


async def find_active_fee_config(db: AsyncSession, on_date: date) -> Optional[FeeConfig]:
    stmt = (
        select(FeeConfig)
        .where(
            FeeConfig.is_active.is_(True),
            FeeConfig.effective_from <= on_date,
            or_(FeeConfig.effective_to.is_(None), FeeConfig.effective_to >= on_date),
        )
        .order_by(FeeConfig.effective_from.desc(), FeeConfig.id.desc())
        .limit(1)
    )
    res = await db.execute(stmt)
    return res.scalars().first()


async def get_fee_config(db: AsyncSession, config_id: int) -> Optional[FeeConfig]:
    res = await db.execute(select(FeeConfig).where(FeeConfig.id == config_id))
    return res.scalar_one_or_none()


async def get_fee_config_by_key(db: AsyncSession, key: str) -> Optional[FeeConfig]:
    res = await db.execute(select(FeeConfig).where(FeeConfig.key == key))
    return res.scalar_one_or_none()


async def list_enabled_seasonal_rates(db: AsyncSession, fee_config_id: int) -> List[SeasonalRate]:
    stmt = (
        select(SeasonalRate)
        .where(SeasonalRate.fee_config_id == fee_config_id, SeasonalRate.enabled.is_(True))
        .order_by(SeasonalRate.priority.desc(), SeasonalRate.name.asc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


def _insert_ignoring_duplicates(dialect_name: str, values: Dict[str, Any]):
    if dialect_name == "postgresql":
        return pg_insert(FeeConfig).values(**values).on_conflict_do_nothing(index_elements=["key"])
    if dialect_name == "sqlite":
        return sqlite_insert(FeeConfig).values(**values).on_conflict_do_nothing(index_elements=["key"])
    if dialect_name in ("mysql", "mariadb"):
        return mysql_insert(FeeConfig).values(**values).prefix_with("IGNORE")
    raise ConfigurationError(f"Cannot upsert the default fee configuration on {dialect_name}")


async def ensure_default_fee_config(db: AsyncSession) -> None:
    """
    Insert the policy-default configuration unless a row with the default
    key already exists. The row ends the day before the earliest active
    configuration, so it only covers dates nothing else prices. Safe under
    concurrent first use: the unique key turns the losing insert into a no-op.
    """
    values = {
        "key": DEFAULT_FEE_CONFIG_KEY,
        "effective_from": DEFAULT_EFFECTIVE_FROM,
        "currency": settings.DEFAULT_CURRENCY,
        "is_active": True,
    }
    res = await db.execute(
        select(func.min(FeeConfig.effective_from)).where(FeeConfig.is_active.is_(True))
    )
    earliest = res.scalar_one_or_none()
    if earliest is not None and earliest > DEFAULT_EFFECTIVE_FROM:
        # stop where the configured history begins
        values["effective_to"] = earliest - timedelta(days=1)
    stmt = _insert_ignoring_duplicates(db.get_bind().dialect.name, values)
    await db.execute(stmt)


async def get_active_fee_config(
    db: AsyncSession,
    on_date: date,
) -> Tuple[FeeConfig, List[SeasonalRate]]:
    """
    The configuration pricing a stay starting on `on_date`, with its enabled
    seasonal rates. Falls back to the default configuration, creating it if
    needed; never returns without a configuration.
    """
    config = await find_active_fee_config(db, on_date)
    if config is None:
        logger.info("no fee configuration covers %s, ensuring the default one exists", on_date)
        try:
            await ensure_default_fee_config(db)
        except SQLAlchemyError as exc:
            raise ConfigurationError("Could not create the default fee configuration") from exc
        config = await find_active_fee_config(db, on_date)

    if config is None:
        raise ConfigurationError(f"No active fee configuration covers {on_date.isoformat()}")

    rates = await list_enabled_seasonal_rates(db, config.id)
    return config, rates


async def create_fee_config(
    db: AsyncSession,
    data: Dict[str, Any],
    seasonal_rates: List[Dict[str, Any]],
) -> FeeConfig:
    """
    Add a configuration taking effect on data["effective_from"]. Open-ended
    active configurations are closed the day before; active ones starting on
    or after that date are deactivated, so one active row covers each date.
    """
    effective_from: date = data["effective_from"]

    res = await db.execute(select(FeeConfig).where(FeeConfig.is_active.is_(True)))
    for existing in res.scalars().all():
        if existing.effective_from >= effective_from:
            existing.is_active = False
        elif existing.effective_to is None or existing.effective_to >= effective_from:
            existing.effective_to = effective_from - timedelta(days=1)

    config = FeeConfig(**data)
    config.seasonal_rates = [SeasonalRate(**rate) for rate in seasonal_rates]
    db.add(config)
    await db.flush()
    return config


async def update_fee_config(db: AsyncSession, config_id: int, data: Dict[str, Any]) -> FeeConfig:
    config = await get_fee_config(db, config_id)
    if config is None:
        raise NotFoundError("Fee configuration not found")
    for k, v in data.items():
        setattr(config, k, v)
    await db.flush()
    return config
