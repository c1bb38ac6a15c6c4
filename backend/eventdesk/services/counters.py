"""
Event counter cache helpers.

currentSignups / currentVolunteers mirror the number of counted registrations
of each type, currentWaitlist the number of approved waitlist entries.
Counters never go below zero.
"""

from eventdesk.domain.enums import RegistrationType
from eventdesk.domain.records import Event


def counter_field(registration_type: RegistrationType) -> str:
    if registration_type == RegistrationType.VOLUNTEER:
        return "current_volunteers"
    return "current_signups"


def adjust_counter(event: Event, registration_type: RegistrationType, delta: int) -> Event:
    field = counter_field(registration_type)
    return event.model_copy(update={field: max(0, getattr(event, field) + delta)})


def adjust_waitlist(event: Event, delta: int) -> Event:
    return event.model_copy(update={"current_waitlist": max(0, event.current_waitlist + delta)})
