import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from holidayhouse.api.dependencies import require_permission
from holidayhouse.core.rbac import Permission
from holidayhouse.db import crud_fees
from holidayhouse.db.session import get_db, unit_of_work
from holidayhouse.schemas.fees import (
    FeeCalculationRequest,
    FeeConfigCreate,
    FeeConfigOut,
    FeeConfigUpdate,
)
from holidayhouse.services.fees import calculate_fees

logger = logging.getLogger("uvicorn.error")
router = APIRouter()


@router.get("/config")
async def current_fee_config(
    as_at: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_permission(Permission.FINANCE_VIEW)),
):
    """Read-only: never creates the default configuration."""
    config = await crud_fees.find_active_fee_config(db, as_at or date.today())
    return {"data": FeeConfigOut.model_validate(config) if config else None}


@router.post("/config", status_code=201)
async def create_fee_config(
    body: FeeConfigCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_permission(Permission.FINANCE_EDIT)),
):
    data = body.model_dump(exclude={"seasonal_rates"})
    data["effective_from"] = body.effective_from or date.today()
    rates = [rate.model_dump() for rate in body.seasonal_rates]

    async with unit_of_work(db):
        config = await crud_fees.create_fee_config(db, data, rates)

    logger.info("fee configuration %s effective from %s created by user %s", config.id, config.effective_from, current_user.id)
    return {"success": True, "data": FeeConfigOut.model_validate(config)}


@router.patch("/config/{config_id}")
async def update_fee_config(
    config_id: int,
    body: FeeConfigUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_permission(Permission.FINANCE_EDIT)),
):
    async with unit_of_work(db):
        config = await crud_fees.update_fee_config(db, config_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": FeeConfigOut.model_validate(config)}


@router.post("/calculate")
async def calculate(
    body: FeeCalculationRequest,
    db: AsyncSession = Depends(get_db),
):
    """Price quote; nothing is stored apart from a first-use default configuration."""
    async with unit_of_work(db):
        config, rates = await crud_fees.get_active_fee_config(db, body.start_date)
        breakdown = calculate_fees(body, config, rates)
    return {"data": {"fee_config_id": config.id, "breakdown": breakdown}}
