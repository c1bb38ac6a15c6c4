"""
Expansion of a recurrence rule into concrete occurrence dates.

The first date is always the event's own date (for weekly rules with
weekdays, the first matching weekday on or after it). Without an end
condition a series stops after 52 occurrences or twelve months, whichever
comes first. No series is longer than 100 occurrences.
"""

import calendar
from datetime import date, timedelta

from eventdesk.domain.enums import RecurrenceFrequency
from eventdesk.schemas.event import RecurrenceRule

OPEN_ENDED_LIMIT = 52
OPEN_ENDED_MONTHS = 12
MAX_OCCURRENCES = 100


def add_months(day: date, months: int) -> date:
    """Same day-of-month N months later, clamped to the month's last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def _candidates(start: date, rule: RecurrenceRule):
    step = 0
    while True:
        if rule.frequency in (RecurrenceFrequency.DAILY, RecurrenceFrequency.CUSTOM):
            yield start + timedelta(days=step * rule.interval)
        elif rule.frequency == RecurrenceFrequency.MONTHLY:
            # From the anchor each time so 31st -> 29th Feb -> 31st Mar
            yield add_months(start, step * rule.interval)
        elif rule.weekdays:
            week_start = start - timedelta(days=start.weekday()) + timedelta(weeks=step * rule.interval)
            for weekday in sorted(set(rule.weekdays)):
                day = week_start + timedelta(days=weekday)
                if day >= start:
                    yield day
        else:
            yield start + timedelta(weeks=step * rule.interval)
        step += 1


def expand(start: date, rule: RecurrenceRule) -> list[date]:
    if rule.count is not None:
        limit, last = rule.count, None
    elif rule.until is not None:
        limit, last = MAX_OCCURRENCES, rule.until
    else:
        limit, last = OPEN_ENDED_LIMIT, add_months(start, OPEN_ENDED_MONTHS)

    dates: list[date] = []
    for day in _candidates(start, rule):
        if last is not None and day > last:
            break
        dates.append(day)
        if limit is not None and len(dates) >= limit:
            break
    return dates
