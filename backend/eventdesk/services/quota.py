"""
Membership-based weekly quota for participant registrations.

The week is Monday 00:00 to Sunday 23:59:59 around the *candidate event's*
date, not around today: registering in March for an event in May counts
against May's week. Only participant registrations that still hold a place
count (cancelled and rejected do not). Volunteer registrations are never
limited.

Quota is keyed by the submitting account. A caregiver registering on behalf
of someone uses the caregiver's own allowance.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from eventdesk.core.exceptions import WeeklyQuotaExceeded
from eventdesk.domain.enums import MembershipType, RegistrationStatus, RegistrationType
from eventdesk.domain.records import Event, Registration

# None = unlimited
MEMBERSHIP_LIMITS: dict[MembershipType, Optional[int]] = {
    MembershipType.ADHOC: None,
    MembershipType.ONCE_WEEKLY: 1,
    MembershipType.TWICE_WEEKLY: 2,
    MembershipType.THREE_PLUS_WEEKLY: None,
}

NOT_COUNTED = frozenset({RegistrationStatus.CANCELLED, RegistrationStatus.REJECTED})


@dataclass(frozen=True)
class IsoWeek:
    start: date  # Monday
    end: date    # Sunday

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class WeeklyUsage:
    week: IsoWeek
    count: int
    limit: Optional[int]

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.count)

    @property
    def exhausted(self) -> bool:
        return self.limit is not None and self.count >= self.limit


def iso_week_of(day: date) -> IsoWeek:
    monday = day - timedelta(days=day.weekday())
    return IsoWeek(start=monday, end=monday + timedelta(days=6))


def weekly_limit(membership: MembershipType) -> Optional[int]:
    return MEMBERSHIP_LIMITS.get(membership)


def weekly_participant_count(
    user_id: str,
    week: IsoWeek,
    registrations: Iterable[Registration],
    events: Iterable[Event],
) -> int:
    event_dates = {event.id: event.date for event in events}
    total = 0
    for registration in registrations:
        if registration.user_id != user_id:
            continue
        if registration.registration_type != RegistrationType.PARTICIPANT:
            continue
        if registration.status in NOT_COUNTED:
            continue
        event_date = event_dates.get(registration.event_id)
        # Registrations for deleted events no longer occupy a week
        if event_date is not None and event_date in week:
            total += 1
    return total


def weekly_usage(
    user_id: str,
    membership: MembershipType,
    on_date: date,
    registrations: Iterable[Registration],
    events: Iterable[Event],
) -> WeeklyUsage:
    week = iso_week_of(on_date)
    return WeeklyUsage(
        week=week,
        count=weekly_participant_count(user_id, week, registrations, events),
        limit=weekly_limit(membership),
    )


def check_weekly_quota(
    user_id: str,
    membership: MembershipType,
    candidate: Event,
    registrations: Iterable[Registration],
    events: Iterable[Event],
) -> WeeklyUsage:
    """Raise WeeklyQuotaExceeded if one more participant registration would go over the limit."""
    usage = weekly_usage(user_id, membership, candidate.date, registrations, events)
    if usage.exhausted:
        raise WeeklyQuotaExceeded(
            f"Your {membership.value.replace('_', ' ')} membership allows {usage.limit} "
            f"event(s) per week. You already have {usage.count} registration(s) for the week of "
            f"{usage.week.start:%d %b} - {usage.week.end:%d %b %Y}.",
            details={
                "week_start": usage.week.start.isoformat(),
                "week_end": usage.week.end.isoformat(),
                "limit": usage.limit,
                "count": usage.count,
            },
        )
    return usage
