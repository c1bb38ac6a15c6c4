"""
Tests for the admission engine, including concurrent admissions.
"""

import asyncio
from datetime import time

import pytest

from eventdesk.core.config import get_settings
from eventdesk.core.exceptions import (
    DuplicateRegistration,
    EventFull,
    EventNotFound,
    TimeConflict,
    UpstreamFailure,
    ValidationError,
    VolunteerSlotsFull,
    WeeklyQuotaExceeded,
)
from eventdesk.domain.enums import MembershipType, RegistrationStatus, RegistrationType
from eventdesk.rowstore import InMemoryRowStore
from eventdesk.rowstore.interface import EVENTS
from eventdesk.services.container import assemble
from eventdesk.services.notifications import NotificationDispatcher
from eventdesk.services.rate_limit import InMemoryRateLimitStore, RateLimiter

from factories import EVENT_DAY, make_event, make_user, registration_request


@pytest.mark.asyncio
async def test_admit_appends_row_and_increments_counter(services, repository, alice, test_event):
    registration = await services.admission.admit(registration_request(alice))

    assert registration.status == RegistrationStatus.REGISTERED
    assert registration.event_title == "Art Jamming"
    assert registration.waitlist_position is None
    assert [r.id for r in await repository.list_registrations(event_id=test_event.id)] == [registration.id]
    assert (await repository.get_event(test_event.id)).current_signups == 1


@pytest.mark.asyncio
async def test_volunteer_uses_volunteer_counter(services, repository, alice, test_event):
    await services.admission.admit(
        registration_request(alice, registration_type=RegistrationType.VOLUNTEER)
    )
    event = await repository.get_event(test_event.id)
    assert event.current_volunteers == 1
    assert event.current_signups == 0


@pytest.mark.asyncio
async def test_unknown_account_is_rejected(services, test_event):
    stranger = make_user("u_stranger")
    with pytest.raises(ValidationError):
        await services.admission.admit(registration_request(stranger))


@pytest.mark.asyncio
async def test_unknown_event_is_rejected(services, alice):
    with pytest.raises(EventNotFound):
        await services.admission.admit(registration_request(alice, event_id="evt_missing"))


@pytest.mark.asyncio
async def test_duplicate_live_registration_is_rejected(services, repository, alice, test_event):
    await services.admission.admit(registration_request(alice))

    with pytest.raises(DuplicateRegistration):
        await services.admission.admit(
            registration_request(alice, registration_type=RegistrationType.VOLUNTEER)
        )
    assert len(await repository.list_registrations(user_id=alice.id)) == 1


@pytest.mark.asyncio
async def test_full_event_is_rejected(services, repository, alice, full_event):
    with pytest.raises(EventFull) as exc:
        await services.admission.admit(registration_request(alice, event_id=full_event.id))

    assert exc.value.details["capacity"] == 2
    assert await repository.list_registrations() == []
    assert (await repository.get_event(full_event.id)).current_signups == 2


@pytest.mark.asyncio
async def test_volunteer_slots_full_is_rejected(services, repository, alice):
    await repository.add_events([make_event(volunteers_needed=1, current_volunteers=1)])
    with pytest.raises(VolunteerSlotsFull):
        await services.admission.admit(
            registration_request(alice, registration_type=RegistrationType.VOLUNTEER)
        )


@pytest.mark.asyncio
async def test_unlimited_capacity_never_fills(services, repository, alice):
    await repository.add_events([make_event(capacity=0, current_signups=500)])
    registration = await services.admission.admit(registration_request(alice))
    assert registration.status == RegistrationStatus.REGISTERED


@pytest.mark.asyncio
async def test_overlapping_event_is_rejected_and_boundary_touch_accepted(services, repository, alice):
    await repository.add_events([
        make_event(id="a", start_time=time(9, 0), end_time=time(11, 0)),
        make_event(id="b", title="Choir", start_time=time(10, 0), end_time=time(12, 0)),
        make_event(id="c", title="Bowling", start_time=time(11, 0), end_time=time(12, 0)),
    ])
    await services.admission.admit(registration_request(alice, event_id="a"))

    with pytest.raises(TimeConflict) as exc:
        await services.admission.admit(registration_request(alice, event_id="b"))
    assert exc.value.details["conflicting_event_id"] == "a"

    accepted = await services.admission.admit(registration_request(alice, event_id="c"))
    assert accepted.event_id == "c"


@pytest.mark.asyncio
async def test_cancelled_registration_does_not_block_overlapping_event(services, repository, alice, staff):
    await repository.add_events([
        make_event(id="a"),
        make_event(id="b", start_time=time(10, 0), end_time=time(12, 0)),
    ])
    first = await services.admission.admit(registration_request(alice, event_id="a"))
    await services.status.change_status(first.id, RegistrationStatus.CANCELLED, staff)

    assert (await services.admission.admit(registration_request(alice, event_id="b"))).event_id == "b"


@pytest.mark.asyncio
async def test_once_weekly_quota_applies_to_participants_only(services, repository):
    member = make_user("u_member", membership_type=MembershipType.ONCE_WEEKLY)
    await repository.add_user(member)
    await repository.add_events([
        make_event(id="mon"),
        make_event(id="tue", date=EVENT_DAY.replace(day=5)),
        make_event(id="wed", date=EVENT_DAY.replace(day=6)),
    ])
    await services.admission.admit(registration_request(member, event_id="mon"))

    with pytest.raises(WeeklyQuotaExceeded):
        await services.admission.admit(registration_request(member, event_id="tue"))

    volunteer = await services.admission.admit(
        registration_request(member, event_id="wed", registration_type=RegistrationType.VOLUNTEER)
    )
    assert volunteer.status == RegistrationStatus.REGISTERED


@pytest.mark.asyncio
async def test_caregiver_registration_uses_caregivers_quota(services, repository):
    caregiver = make_user("u_carer", membership_type=MembershipType.ONCE_WEEKLY)
    await repository.add_user(caregiver)
    await repository.add_events([make_event(id="mon"), make_event(id="thu", date=EVENT_DAY.replace(day=7))])

    first = await services.admission.admit(
        registration_request(caregiver, event_id="mon", is_caregiver=True, participant_name="Mei Ling")
    )
    assert first.display_name == "Mei Ling"

    with pytest.raises(WeeklyQuotaExceeded):
        await services.admission.admit(
            registration_request(caregiver, event_id="thu", is_caregiver=True, participant_name="Wei Jie")
        )


@pytest.mark.asyncio
async def test_checks_run_in_order_duplicate_before_capacity(services, repository, alice):
    await repository.add_events([make_event(capacity=1)])
    await services.admission.admit(registration_request(alice))
    # Event is now full too, but the duplicate is reported first
    with pytest.raises(DuplicateRegistration):
        await services.admission.admit(registration_request(alice))


@pytest.mark.asyncio
async def test_concurrent_admissions_never_overbook(services, repository):
    await repository.add_events([make_event(capacity=3)])
    users = [make_user(f"u_racer{i}") for i in range(10)]
    for user in users:
        await repository.add_user(user)

    results = await asyncio.gather(
        *(services.admission.admit(registration_request(u)) for u in users),
        return_exceptions=True,
    )

    admitted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, EventFull)]
    assert len(admitted) == 3
    assert len(rejected) == 7
    assert (await repository.get_event("evt_1")).current_signups == 3
    assert len(await repository.list_registrations(event_id="evt_1")) == 3


class FailingCounterStore(InMemoryRowStore):
    """Accepts appends but fails every event row update."""

    async def update_range(self, table, row_index, values, column=0):
        if table == EVENTS:
            raise ConnectionError("sheet API timed out")
        await super().update_range(table, row_index, values, column)


@pytest.mark.asyncio
async def test_counter_write_failure_removes_appended_row(sender):
    services = assemble(
        FailingCounterStore(),
        NotificationDispatcher([sender], get_settings().DEFAULT_CONFIRMATION_TEMPLATE),
        RateLimiter(InMemoryRateLimitStore(), {"default": 100}),
    )
    alice = make_user("u_alice")
    await services.repository.add_user(alice)
    await services.repository.add_events([make_event()])

    with pytest.raises(UpstreamFailure) as exc:
        await services.admission.admit(registration_request(alice))

    assert "sheet API" not in exc.value.message
    assert await services.repository.list_registrations() == []
    assert (await services.repository.get_event("evt_1")).current_signups == 0
    await services.notifier.drain()
    assert sender.sent == []


@pytest.mark.asyncio
async def test_admission_sends_confirmation_in_background(services, alice, test_event, sender):
    await services.admission.admit(registration_request(alice))
    await services.notifier.drain()

    assert len(sender.sent) == 1
    recipient, message = sender.sent[0]
    assert recipient == "91234567"
    assert "Alice" in message and "Art Jamming" in message
