# holidayhouse/services/fees.py
"""
Nightly-rate fee engine.

Internal stays are priced per guest-type bucket from the fee configuration.
Public (external) stays are priced per adult/child, with seasonal overrides
and an optional whole-house minimum. All arithmetic is Decimal, quantized to
cents, so repeated calls always produce the same breakdown.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple

from holidayhouse.core.errors import ConfigurationError, ValidationError
from holidayhouse.db.models import BookingSource, FeeConfig, SeasonalRate
from holidayhouse.schemas.fees import FeeBreakdown, FeeInput, LineItem

CENT = Decimal("0.01")

# (label, FeeConfig rate attribute, GuestBreakdown count attribute)
INTERNAL_BUCKETS: Tuple[Tuple[str, str, str], ...] = (
    ("Members", "member_night_rate", "member"),
    ("Dependents (with member)", "dependent_with_member_night_rate", "dependent_with_member"),
    ("Dependents (without member)", "dependent_without_member_night_rate", "dependent_without_member"),
    ("Guests of member", "guest_of_member_night_rate", "guest_of_member"),
    ("Guests of dependent", "guest_of_dependent_night_rate", "guest_of_dependent"),
    ("Mere family", "mere_family_night_rate", "mere_family"),
)


def money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------
# Seasonal rate selection
# ---------------------------

def is_date_in_season(day: date, rate: SeasonalRate) -> bool:
    # (month, day) tuples order exactly like month + day / 100
    key = (day.month, day.day)
    start = (rate.start_month, rate.start_day)
    end = (rate.end_month, rate.end_day)

    if start <= end:
        return start <= key <= end

    # Wraps year-end (e.g. Dec -> Jan)
    return key >= start or key <= end


def season_length(rate: SeasonalRate) -> int:
    """Days covered by the window, counted in a leap year."""
    start = date(2000, rate.start_month, rate.start_day)
    end = date(2000, rate.end_month, rate.end_day)
    days = (end - start).days
    if days < 0:
        days += 366
    return days + 1


def pick_seasonal_rate(day: date, seasonal_rates: Iterable[SeasonalRate]) -> Optional[SeasonalRate]:
    """
    Highest priority wins. Equal priorities fall back to the narrowest
    window, then name, then id, so overlapping seasons always resolve the
    same way.
    """
    matches = [rate for rate in seasonal_rates if rate.enabled and is_date_in_season(day, rate)]
    if not matches:
        return None
    matches.sort(key=lambda r: (-(r.priority or 0), season_length(r), r.name or "", r.id or 0))
    return matches[0]


# ---------------------------
# Fee calculation
# ---------------------------

def _line(label: str, rate, count: int, nights: int) -> LineItem:
    return LineItem(label=label, amount=money(money(rate) * count * nights))


def _internal_items(fee_input: FeeInput, config: FeeConfig) -> List[LineItem]:
    counts = fee_input.counts
    return [
        _line(label, getattr(config, rate_attr), getattr(counts, count_attr), fee_input.nights)
        for label, rate_attr, count_attr in INTERNAL_BUCKETS
    ]


def calculate_fees(
    fee_input: FeeInput,
    config: Optional[FeeConfig],
    seasonal_rates: Sequence[SeasonalRate] = (),
) -> FeeBreakdown:
    if config is None:
        raise ConfigurationError("A fee configuration is required to price a booking")
    if fee_input.nights < 1:
        raise ValidationError("Booking must be at least one night")

    if fee_input.source != BookingSource.EXTERNAL_PUBLIC:
        # manual imports are priced on the internal table
        items = _internal_items(fee_input, config)
        return FeeBreakdown(
            line_items=items,
            total=sum((item.amount for item in items), Decimal("0.00")),
            currency=config.currency,
        )

    season = pick_seasonal_rate(fee_input.start_date, seasonal_rates)
    if season is not None:
        adult_rate = season.external_adult_night_rate
        child_rate = season.external_child_night_rate
    else:
        adult_rate = config.external_adult_night_rate
        child_rate = config.external_child_night_rate

    counts = fee_input.counts
    items = [
        _line("External visitors (adult)", adult_rate, counts.visitor_adult, fee_input.nights),
        _line("External visitors (child under 6)", child_rate, counts.visitor_child_under_6, fee_input.nights),
    ]

    subtotal = sum((item.amount for item in items), Decimal("0.00"))
    minimum = money(config.external_whole_house_min_rate)
    if minimum > 0 and subtotal < minimum:
        items.append(LineItem(label="Whole-house minimum adjustment", amount=minimum - subtotal))

    return FeeBreakdown(
        line_items=items,
        total=sum((item.amount for item in items), Decimal("0.00")),
        currency=config.currency,
        effective_rate_name=season.name if season is not None else None,
    )
