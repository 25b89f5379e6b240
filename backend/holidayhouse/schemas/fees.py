# holidayhouse/schemas/fees.py
import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from holidayhouse.db.models import BookingSource


class GuestBreakdown(BaseModel):
    """Head count per pricing bucket."""

    member: int = Field(0, ge=0)
    dependent_with_member: int = Field(0, ge=0)
    dependent_without_member: int = Field(0, ge=0)
    guest_of_member: int = Field(0, ge=0)
    guest_of_dependent: int = Field(0, ge=0)
    mere_family: int = Field(0, ge=0)
    visitor_adult: int = Field(0, ge=0)
    visitor_child_under_6: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return sum(self.model_dump().values())


class FeeInput(BaseModel):
    source: BookingSource
    start_date: date
    nights: int
    counts: GuestBreakdown = Field(default_factory=GuestBreakdown)


class LineItem(BaseModel):
    label: str
    amount: Decimal


class FeeBreakdown(BaseModel):
    line_items: List[LineItem]
    total: Decimal
    currency: str
    effective_rate_name: Optional[str] = None

    def to_snapshot(self) -> Dict[str, Any]:
        """
        The shape persisted as Booking.fee_snapshot. Amounts are decimal
        strings so the stored JSON never goes through a float.
        """
        snapshot: Dict[str, Any] = {
            "lineItems": [{"label": item.label, "amount": str(item.amount)} for item in self.line_items],
            "total": str(self.total),
            "currency": self.currency,
        }
        if self.effective_rate_name:
            snapshot["effectiveRateName"] = self.effective_rate_name
        return snapshot


class FeeCalculationRequest(FeeInput):
    nights: int = Field(gt=0)


# ---------------------------
# Fee configuration admin
# ---------------------------

class SeasonalRateIn(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    start_month: int = Field(ge=1, le=12)
    start_day: int = Field(ge=1, le=31)
    end_month: int = Field(ge=1, le=12)
    end_day: int = Field(ge=1, le=31)
    priority: int = 0
    external_adult_night_rate: Decimal = Field(gt=0)
    external_child_night_rate: Decimal = Field(ge=0)
    enabled: bool = True

    @model_validator(mode="after")
    def _check_days(self):
        # 2000 is a leap year, so Feb 29 is accepted
        for month, day in ((self.start_month, self.start_day), (self.end_month, self.end_day)):
            if day > calendar.monthrange(2000, month)[1]:
                raise ValueError(f"Day {day} is not valid for month {month}")
        return self


class SeasonalRateOut(BaseModel):
    id: int
    name: str
    start_month: int
    start_day: int
    end_month: int
    end_day: int
    priority: int
    external_adult_night_rate: Decimal
    external_child_night_rate: Decimal
    enabled: bool

    model_config = {"from_attributes": True}


class FeeConfigCreate(BaseModel):
    monthly_member_subscription: Decimal = Field(gt=0)
    member_night_rate: Decimal = Field(ge=0)
    dependent_with_member_night_rate: Decimal = Field(ge=0)
    dependent_without_member_night_rate: Decimal = Field(ge=0)
    guest_of_member_night_rate: Decimal = Field(ge=0)
    guest_of_dependent_night_rate: Decimal = Field(ge=0)
    mere_family_night_rate: Decimal = Field(ge=0)
    external_adult_night_rate: Decimal = Field(ge=0)
    external_child_night_rate: Decimal = Field(ge=0)
    external_whole_house_min_rate: Optional[Decimal] = Field(None, ge=0)
    overdue_reminder_enabled: bool = True
    currency: str = Field("ZAR", min_length=3, max_length=3)
    effective_from: Optional[date] = None
    seasonal_rates: List[SeasonalRateIn] = []


class FeeConfigUpdate(BaseModel):
    is_active: Optional[bool] = None
    effective_to: Optional[date] = None
    overdue_reminder_enabled: Optional[bool] = None
    external_whole_house_min_rate: Optional[Decimal] = Field(None, ge=0)


class FeeConfigOut(BaseModel):
    id: int
    key: Optional[str] = None
    monthly_member_subscription: Decimal
    member_night_rate: Decimal
    dependent_with_member_night_rate: Decimal
    dependent_without_member_night_rate: Decimal
    guest_of_member_night_rate: Decimal
    guest_of_dependent_night_rate: Decimal
    mere_family_night_rate: Decimal
    external_adult_night_rate: Decimal
    external_child_night_rate: Decimal
    external_whole_house_min_rate: Optional[Decimal] = None
    overdue_reminder_enabled: bool
    currency: str
    is_active: bool
    effective_from: date
    effective_to: Optional[date] = None
    created_at: datetime
    seasonal_rates: List[SeasonalRateOut] = []

    model_config = {"from_attributes": True}
