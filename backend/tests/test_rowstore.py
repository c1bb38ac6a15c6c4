"""
Tests for row mapping, the in-memory store, the SQL store and the repository.
"""

import asyncio
from datetime import datetime, time, timezone

import pytest
import pytest_asyncio

from eventdesk.core.config import get_settings
from eventdesk.core.exceptions import RegistrationNotFound, UpstreamFailure
from eventdesk.core.security import Identity
from eventdesk.db.session import build_engine, build_sessionmaker
from eventdesk.domain.enums import RegistrationStatus, RegistrationType, SkillLevel
from eventdesk.rowstore import InMemoryRowStore, SheetRepository
from eventdesk.rowstore.interface import EVENTS, REGISTRATIONS
from eventdesk.rowstore.mappers import EVENT_MAPPER, REGISTRATION_MAPPER, USER_MAPPER
from eventdesk.rowstore.sql import SqlRowStore
from eventdesk.services.container import assemble
from eventdesk.services.notifications import NotificationDispatcher
from eventdesk.services.rate_limit import InMemoryRateLimitStore, RateLimiter

from factories import make_event, make_registration, make_user, registration_request

ALICE = make_user("u_alice")


def test_registration_round_trip_keeps_every_field():
    registration = make_registration(
        ALICE,
        make_event(),
        status=RegistrationStatus.WAITLIST,
        waitlist_position=3,
        is_caregiver=True,
        participant_name="Mei Ling",
        promoted_at=datetime(2030, 2, 2, 8, 30, tzinfo=timezone.utc),
        dietary_requirements="Halal",
        needs_wheelchair_access=True,
        caregiver_name="Tan",
        caregiver_phone="+6598765432",
    )
    row = REGISTRATION_MAPPER.to_row(registration)

    assert all(isinstance(cell, str) for cell in row)
    assert REGISTRATION_MAPPER.from_row(row) == registration


def test_absent_optionals_are_empty_cells():
    registration = make_registration(ALICE, make_event())
    row = REGISTRATION_MAPPER.to_row(registration)

    assert row[REGISTRATION_MAPPER.column_index("waitlist_position")] == ""
    assert row[REGISTRATION_MAPPER.column_index("promoted_at")] == ""
    parsed = REGISTRATION_MAPPER.from_row(row)
    assert parsed.waitlist_position is None
    assert parsed.promoted_at is None


def test_short_rows_are_padded_and_booleans_case_insensitive():
    row = ["evt_9", "Bowling", "", "2030-03-05", "14:00", "", "Bowling Alley", "sports", "12", "3", "TRUE"]
    event = EVENT_MAPPER.from_row(row)

    assert event.end_time is None
    assert event.capacity == 12
    assert event.current_signups == 3
    assert event.wheelchair_accessible is True
    assert event.volunteers_needed is None
    assert event.confirmation_message == ""


def test_zero_capacity_parses_as_unlimited():
    row = EVENT_MAPPER.to_row(make_event(capacity=None))
    row[EVENT_MAPPER.column_index("capacity")] = "0"
    assert EVENT_MAPPER.from_row(row).capacity is None


def test_event_round_trip():
    event = make_event(skill_level=SkillLevel.BEGINNER, is_recurring=True, recurring_group_id="grp_1",
                       caregiver_payment_amount=15, end_time=time(11, 30))
    assert EVENT_MAPPER.from_row(EVENT_MAPPER.to_row(event)) == event


def test_user_round_trip():
    user = make_user("u_bob", approved_by="u_staff", approved_at=datetime(2030, 1, 1, tzinfo=timezone.utc))
    assert USER_MAPPER.from_row(USER_MAPPER.to_row(user)) == user


@pytest.mark.asyncio
async def test_in_memory_delete_shifts_later_rows():
    store = InMemoryRowStore()
    for name in ("a", "b", "c"):
        await store.append_row(REGISTRATIONS, [name])

    await store.delete_row(REGISTRATIONS, 0)

    assert await store.read_range(REGISTRATIONS) == [["b"], ["c"]]
    with pytest.raises(IndexError):
        await store.update_range(REGISTRATIONS, 5, ["x"])


@pytest.mark.asyncio
async def test_in_memory_update_range_writes_from_column():
    store = InMemoryRowStore()
    await store.append_row(EVENTS, ["e1", "title"])
    await store.update_range(EVENTS, 0, ["x", "y"], column=3)
    assert await store.read_range(EVENTS) == [["e1", "title", "", "x", "y"]]


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rowstore.db'}")
    store = SqlRowStore(engine, build_sessionmaker(engine))
    await store.create_schema()
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_sql_store_append_read_update(sql_store):
    assert await sql_store.append_row(EVENTS, ["e1", "One"]) == 0
    await sql_store.append_rows(EVENTS, [["e2", "Two"], ["e3", "Three"]])
    await sql_store.update_range(EVENTS, 1, ["Deux"], column=1)

    assert await sql_store.read_range(EVENTS) == [["e1", "One"], ["e2", "Deux"], ["e3", "Three"]]
    assert await sql_store.read_range(EVENTS, 1, 2) == [["e2", "Deux"]]
    assert await sql_store.read_range(REGISTRATIONS) == []


@pytest.mark.asyncio
async def test_sql_store_delete_shifts_later_rows(sql_store):
    await sql_store.append_rows(EVENTS, [["a"], ["b"], ["c"]])

    await sql_store.delete_row(EVENTS, 1)

    assert await sql_store.read_range(EVENTS) == [["a"], ["c"]]
    assert await sql_store.append_row(EVENTS, ["d"]) == 2
    with pytest.raises(IndexError):
        await sql_store.delete_row(EVENTS, 9)


@pytest.mark.asyncio
async def test_sql_store_concurrent_appends_get_distinct_indexes(sql_store):
    indexes = await asyncio.gather(
        *(sql_store.append_row(REGISTRATIONS, [f"reg_{i}"]) for i in range(10))
    )

    assert sorted(indexes) == list(range(10))
    rows = await sql_store.read_range(REGISTRATIONS)
    assert sorted(row[0] for row in rows) == sorted(f"reg_{i}" for i in range(10))


@pytest.mark.asyncio
async def test_sql_store_appends_interleaved_with_deletes_stay_contiguous(sql_store):
    await sql_store.append_rows(EVENTS, [["a"], ["b"], ["c"], ["d"]])

    await asyncio.gather(
        sql_store.delete_row(EVENTS, 0),
        sql_store.append_row(EVENTS, ["e"]),
        sql_store.delete_row(EVENTS, 0),
        sql_store.append_row(EVENTS, ["f"]),
    )

    rows = await sql_store.read_range(EVENTS)
    assert sorted(row[0] for row in rows) == ["c", "d", "e", "f"]
    assert [await sql_store.read_range(EVENTS, i, i + 1) for i in range(4)] == [[row] for row in rows]


@pytest.mark.asyncio
async def test_concurrent_admissions_over_sql_store_can_be_cancelled(sql_store):
    services = assemble(sql_store, NotificationDispatcher([], get_settings().DEFAULT_CONFIRMATION_TEMPLATE),
                        RateLimiter(InMemoryRateLimitStore(), {"default": 100}))
    alice, bob = make_user("u_alice"), make_user("u_bob")
    await services.repository.add_user(alice)
    await services.repository.add_user(bob)
    await services.repository.add_events([
        make_event(id="evt_a"),
        make_event(id="evt_b", title="Pottery", date=make_event().date.replace(day=5)),
    ])

    admitted = await asyncio.gather(
        services.admission.admit(registration_request(alice, "evt_a")),
        services.admission.admit(registration_request(bob, "evt_b")),
        services.admission.admit(registration_request(alice, "evt_b")),
        services.admission.admit(registration_request(bob, "evt_a")),
    )

    staff = Identity(user_id="u_staff", role="staff")
    for registration in admitted:
        cancelled = await services.status.cancel(registration.id, staff)
        assert cancelled.status == RegistrationStatus.CANCELLED
    assert [r.status for r in await services.repository.list_registrations()] == [RegistrationStatus.CANCELLED] * 4
    for event in await services.repository.list_events():
        assert event.current_signups == 0
    await services.notifier.drain()


@pytest.mark.asyncio
async def test_repository_over_sql_store(sql_store):
    repository = SheetRepository(sql_store)
    event = make_event()
    await repository.add_events([event])
    registration = make_registration(ALICE, event, registration_type=RegistrationType.VOLUNTEER)
    await repository.add_registration(registration)

    assert await repository.get_event(event.id) == event
    assert await repository.list_registrations(user_id=ALICE.id) == [registration]

    await repository.delete_registration(registration.id)
    with pytest.raises(RegistrationNotFound):
        await repository.get_registration(registration.id)


@pytest.mark.asyncio
async def test_repository_skips_blank_rows():
    store = InMemoryRowStore()
    repository = SheetRepository(store)
    await store.append_row(EVENTS, [])
    await repository.add_events([make_event()])
    assert [e.id for e in await repository.list_events()] == ["evt_1"]


class BrokenStore(InMemoryRowStore):
    async def read_range(self, table, start=0, end=None):
        raise TimeoutError("quota exceeded for sheets API")


@pytest.mark.asyncio
async def test_backend_errors_become_upstream_failures():
    repository = SheetRepository(BrokenStore())
    with pytest.raises(UpstreamFailure) as exc:
        await repository.list_events()
    assert isinstance(exc.value.cause, TimeoutError)
    assert "sheets" not in exc.value.message
