# holidayhouse/services/dates.py
import calendar
from datetime import date

from holidayhouse.core.errors import ValidationError


def calculate_nights(start_date: date, end_date: date) -> int:
    """
    Whole calendar days between the dates, end exclusive. Zero or negative
    ranges are rejected.
    """
    nights = (end_date - start_date).days
    if nights < 1:
        raise ValidationError("Booking must be at least one night")
    return nights


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    # half-open: [start, end)
    return start_a < end_b and start_b < end_a


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))
