"""
Time-overlap conflict detection.

Two events conflict iff they are on the same date and their windows overlap
as half-open intervals [start, end): startA < endB and startB < endA.
An event without an end time is treated as ending when it starts, so a
zero-length event only overlaps events that strictly contain its instant and
never conflicts on a boundary touch.
"""

from datetime import time
from typing import Iterable, Optional

from eventdesk.domain.records import Event


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def event_window(event: Event) -> tuple[int, int]:
    start = minutes_since_midnight(event.start_time)
    end = minutes_since_midnight(event.end_time) if event.end_time else start
    return start, end


def events_overlap(a: Event, b: Event) -> bool:
    if a.date != b.date:
        return False
    start_a, end_a = event_window(a)
    start_b, end_b = event_window(b)
    return start_a < end_b and start_b < end_a


def find_conflict(candidate: Event, existing_events: Iterable[Event]) -> Optional[Event]:
    """Return the first existing event that overlaps the candidate, if any."""
    for event in existing_events:
        if event.id == candidate.id:
            continue
        if events_overlap(candidate, event):
            return event
    return None


def has_conflict(candidate: Event, existing_events: Iterable[Event]) -> bool:
    return find_conflict(candidate, existing_events) is not None
