from datetime import date

import pytest

from holidayhouse.core.errors import ValidationError
from holidayhouse.services.dates import add_months, calculate_nights, ranges_overlap


def test_nights_are_whole_days_end_exclusive():
    assert calculate_nights(date(2025, 1, 1), date(2025, 1, 4)) == 3
    assert calculate_nights(date(2024, 2, 28), date(2024, 3, 1)) == 2


@pytest.mark.parametrize("end", [date(2025, 1, 1), date(2024, 12, 31)])
def test_empty_or_reversed_range_is_rejected(end):
    with pytest.raises(ValidationError):
        calculate_nights(date(2025, 1, 1), end)


def test_touching_ranges_do_not_overlap():
    assert not ranges_overlap(date(2025, 1, 1), date(2025, 1, 5), date(2025, 1, 5), date(2025, 1, 8))
    assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 5), date(2025, 1, 4), date(2025, 1, 8))
    assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 10), date(2025, 1, 3), date(2025, 1, 4))


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2025, 11, 15), 18) == date(2027, 5, 15)
