"""
Tests for same-day time overlap detection.
"""

from datetime import time, timedelta

from eventdesk.services.conflict import event_window, events_overlap, find_conflict, has_conflict

from factories import EVENT_DAY, make_event


def window(event_id, start, end=None, day=EVENT_DAY):
    return make_event(id=event_id, date=day, start_time=start, end_time=end)


def test_overlapping_windows_conflict():
    a = window("a", time(9, 0), time(11, 0))
    b = window("b", time(10, 0), time(12, 0))
    assert events_overlap(a, b)
    assert events_overlap(b, a)


def test_boundary_touch_is_not_a_conflict():
    a = window("a", time(9, 0), time(11, 0))
    c = window("c", time(11, 0), time(12, 0))
    assert not events_overlap(a, c)


def test_different_dates_never_conflict():
    a = window("a", time(9, 0), time(11, 0))
    b = window("b", time(9, 0), time(11, 0), day=EVENT_DAY + timedelta(days=1))
    assert not events_overlap(a, b)


def test_containment_conflicts():
    outer = window("outer", time(8, 0), time(17, 0))
    inner = window("inner", time(12, 0), time(13, 0))
    assert events_overlap(outer, inner)


def test_missing_end_time_is_zero_length():
    point = window("point", time(10, 0))
    assert event_window(point) == (600, 600)
    # Strictly inside another window: conflicts
    assert events_overlap(point, window("span", time(9, 0), time(11, 0)))
    # On either boundary: does not
    assert not events_overlap(point, window("before", time(9, 0), time(10, 0)))
    assert not events_overlap(point, window("after", time(10, 0), time(11, 0)))


def test_two_zero_length_events_at_same_instant_do_not_conflict():
    assert not events_overlap(window("p", time(10, 0)), window("q", time(10, 0)))


def test_find_conflict_returns_first_clash_and_skips_itself():
    candidate = window("b", time(10, 0), time(12, 0))
    existing = [
        window("free", time(12, 0), time(13, 0)),
        window("b", time(10, 0), time(12, 0)),
        window("clash", time(9, 0), time(11, 0)),
    ]
    assert find_conflict(candidate, existing).id == "clash"
    assert has_conflict(candidate, existing)
    assert not has_conflict(candidate, existing[:2])
