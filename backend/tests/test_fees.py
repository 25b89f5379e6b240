from datetime import date
from decimal import Decimal

import pytest

from conftest import make_fee_config, make_season
from holidayhouse.core.errors import ConfigurationError, ValidationError
from holidayhouse.db.models import BookingSource
from holidayhouse.schemas.fees import FeeInput, GuestBreakdown
from holidayhouse.services.fees import (
    INTERNAL_BUCKETS,
    calculate_fees,
    is_date_in_season,
    pick_seasonal_rate,
)


def _external(start, nights, **counts):
    return FeeInput(
        source=BookingSource.EXTERNAL_PUBLIC,
        start_date=start,
        nights=nights,
        counts=GuestBreakdown(**counts),
    )


# ---------------------------
# seasons
# ---------------------------

def test_year_wrapping_season():
    season = make_season(start=(12, 1), end=(1, 15))
    assert is_date_in_season(date(2025, 12, 25), season)
    assert is_date_in_season(date(2026, 1, 10), season)
    assert is_date_in_season(date(2026, 1, 15), season)
    assert not is_date_in_season(date(2026, 1, 16), season)
    assert not is_date_in_season(date(2026, 2, 1), season)


def test_plain_season_is_inclusive():
    season = make_season(start=(3, 10), end=(4, 2))
    assert is_date_in_season(date(2025, 3, 10), season)
    assert is_date_in_season(date(2025, 4, 2), season)
    assert not is_date_in_season(date(2025, 4, 3), season)
    assert not is_date_in_season(date(2025, 3, 9), season)


def test_highest_priority_wins():
    low = make_season(name="Summer", start=(11, 1), end=(2, 28), priority=10, id=1)
    high = make_season(name="Christmas", start=(12, 20), end=(12, 31), priority=50, id=2)
    assert pick_seasonal_rate(date(2025, 12, 24), [low, high]) is high
    assert pick_seasonal_rate(date(2025, 11, 24), [low, high]) is low
    assert pick_seasonal_rate(date(2025, 6, 1), [low, high]) is None


def test_equal_priority_prefers_narrowest_then_name():
    wide = make_season(name="Alpha", start=(12, 1), end=(1, 31), priority=5, id=1)
    narrow = make_season(name="Zulu", start=(12, 20), end=(12, 27), priority=5, id=2)
    assert pick_seasonal_rate(date(2025, 12, 22), [wide, narrow]) is narrow

    b = make_season(name="Beta", start=(12, 20), end=(12, 27), priority=5, id=3)
    a = make_season(name="Alpha", start=(12, 20), end=(12, 27), priority=5, id=4)
    assert pick_seasonal_rate(date(2025, 12, 22), [b, a]) is a


def test_disabled_season_never_applies():
    season = make_season(enabled=False)
    assert pick_seasonal_rate(date(2025, 12, 25), [season]) is None


# ---------------------------
# internal pricing
# ---------------------------

def test_internal_member_and_dependent_stay():
    fee_input = FeeInput(
        source=BookingSource.INTERNAL,
        start_date=date(2025, 3, 1),
        nights=3,
        counts=GuestBreakdown(member=2, dependent_with_member=1),
    )
    breakdown = calculate_fees(fee_input, make_fee_config())

    assert [item.label for item in breakdown.line_items] == [label for label, _, _ in INTERNAL_BUCKETS]
    assert [item.amount for item in breakdown.line_items if item.amount] == [Decimal("150.00"), Decimal("75.00")]
    assert breakdown.total == Decimal("225.00")
    assert breakdown.currency == "ZAR"
    assert breakdown.effective_rate_name is None


def test_internal_pricing_ignores_seasons():
    fee_input = FeeInput(
        source=BookingSource.INTERNAL,
        start_date=date(2025, 12, 20),
        nights=1,
        counts=GuestBreakdown(member=1),
    )
    breakdown = calculate_fees(fee_input, make_fee_config(), [make_season()])
    assert breakdown.total == Decimal("50.00")
    assert breakdown.effective_rate_name is None


def test_manual_import_uses_internal_table():
    fee_input = FeeInput(
        source=BookingSource.MANUAL_IMPORT,
        start_date=date(2025, 3, 1),
        nights=2,
        counts=GuestBreakdown(mere_family=1),
    )
    breakdown = calculate_fees(fee_input, make_fee_config())
    assert len(breakdown.line_items) == 6
    assert breakdown.total == Decimal("400.00")


# ---------------------------
# external pricing
# ---------------------------

def test_external_stay_in_season():
    breakdown = calculate_fees(
        _external(date(2025, 12, 20), 2, visitor_adult=2),
        make_fee_config(),
        [make_season()],
    )
    assert breakdown.total == Decimal("2000.00")
    assert breakdown.effective_rate_name == "Peak Summer"
    assert [item.label for item in breakdown.line_items] == [
        "External visitors (adult)",
        "External visitors (child under 6)",
    ]


def test_external_stay_out_of_season_uses_base_rates():
    breakdown = calculate_fees(
        _external(date(2025, 3, 20), 1, visitor_adult=1, visitor_child_under_6=1),
        make_fee_config(),
        [make_season()],
    )
    assert breakdown.total == Decimal("600.00")
    assert breakdown.effective_rate_name is None


def test_whole_house_minimum_tops_up_the_shortfall():
    config = make_fee_config(external_whole_house_min_rate=Decimal("1000.00"))
    breakdown = calculate_fees(_external(date(2025, 3, 20), 1, visitor_adult=1), config)

    assert breakdown.line_items[-1].label == "Whole-house minimum adjustment"
    assert breakdown.line_items[-1].amount == Decimal("600.00")
    assert breakdown.total == Decimal("1000.00")


def test_whole_house_minimum_not_applied_above_it():
    config = make_fee_config(external_whole_house_min_rate=Decimal("500.00"))
    breakdown = calculate_fees(_external(date(2025, 3, 20), 2, visitor_adult=1), config)
    assert len(breakdown.line_items) == 2
    assert breakdown.total == Decimal("800.00")


def test_total_is_exact_sum_and_calls_are_deterministic():
    config = make_fee_config(external_adult_night_rate=Decimal("333.33"))
    fee_input = _external(date(2025, 3, 20), 3, visitor_adult=3, visitor_child_under_6=1)

    first = calculate_fees(fee_input, config)
    second = calculate_fees(fee_input, config)
    assert first == second
    assert first.total == sum(item.amount for item in first.line_items)
    assert first.total == Decimal("3599.97")


def test_snapshot_uses_decimal_strings():
    breakdown = calculate_fees(_external(date(2025, 12, 20), 2, visitor_adult=2), make_fee_config(), [make_season()])
    snapshot = breakdown.to_snapshot()
    assert snapshot == {
        "lineItems": [
            {"label": "External visitors (adult)", "amount": "2000.00"},
            {"label": "External visitors (child under 6)", "amount": "0.00"},
        ],
        "total": "2000.00",
        "currency": "ZAR",
        "effectiveRateName": "Peak Summer",
    }


def test_missing_configuration_is_an_error():
    with pytest.raises(ConfigurationError):
        calculate_fees(_external(date(2025, 3, 20), 1, visitor_adult=1), None)


def test_zero_nights_is_rejected():
    with pytest.raises(ValidationError):
        calculate_fees(_external(date(2025, 3, 20), 0, visitor_adult=1), make_fee_config())
