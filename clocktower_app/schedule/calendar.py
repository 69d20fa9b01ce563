"""Due-day calculations for each subscription frequency"""

from datetime import date

from clocktower_app.models.schedule import DueDayResult, FrequencyClass
from clocktower_app.utils.time import day_index_to_date

# Upper bounds accepted by the ledger contract for each frequency
MONTHLY_MAX_DAY = 28
QUARTERLY_MAX_DAY = 90
YEARLY_MAX_DAY = 365


def weekly_due_day(day: date) -> int:
    """
    ISO weekday of a date, Monday=1 .. Sunday=7

    Args:
        day: Calendar date

    Returns:
        Due day in the range 1-7
    """
    return day.isoweekday()


def quarter_offset(day: date) -> int:
    """
    1-based offset of a date from the first day of its calendar quarter

    Args:
        day: Calendar date

    Returns:
        1 on the first day of a quarter, up to 92
    """
    quarter_start = date(day.year, ((day.month - 1) // 3) * 3 + 1, 1)
    return (day - quarter_start).days + 1


def due_day(frequency: int, day_index: int) -> DueDayResult:
    """
    Map a day index to the due-day value the ledger uses for a frequency

    Pure function: the same (frequency, day_index) always yields the same
    result. A skipped result means no subscription of that frequency can be
    due on this day.

    Args:
        frequency: FrequencyClass code (0-3)
        day_index: Whole days since the Unix epoch (UTC)

    Returns:
        DueDayResult with either a due day or a skip reason
    """
    day = day_index_to_date(day_index)

    if frequency == FrequencyClass.WEEKLY:
        return DueDayResult(frequency=frequency, due_day=weekly_due_day(day))

    if frequency == FrequencyClass.MONTHLY:
        if day.day > MONTHLY_MAX_DAY:
            return DueDayResult(
                frequency=frequency,
                due_day=day.day,
                skip=True,
                skip_reason="exceeds 28-day limit",
            )
        return DueDayResult(frequency=frequency, due_day=day.day)

    if frequency == FrequencyClass.QUARTERLY:
        offset = quarter_offset(day)
        if offset <= 0 or offset > QUARTERLY_MAX_DAY:
            return DueDayResult(
                frequency=frequency,
                due_day=offset,
                skip=True,
                skip_reason="out of quarter range",
            )
        return DueDayResult(frequency=frequency, due_day=offset)

    if frequency == FrequencyClass.YEARLY:
        # Day 366 of a leap year is deliberately never due
        day_of_year = day.timetuple().tm_yday
        if day_of_year <= 0 or day_of_year > YEARLY_MAX_DAY:
            return DueDayResult(
                frequency=frequency,
                due_day=day_of_year,
                skip=True,
                skip_reason="out of year range",
            )
        return DueDayResult(frequency=frequency, due_day=day_of_year)

    return DueDayResult(
        frequency=frequency,
        due_day=None,
        skip=True,
        skip_reason="unknown frequency",
    )


def due_days_for(day_index: int) -> list[DueDayResult]:
    """Due-day results for every frequency class on one day, in code order."""
    return [due_day(frequency, day_index) for frequency in FrequencyClass]
