"""
Admission engine: decides whether a registration may proceed.

Checks run in a fixed order and stop at the first failure:

  1. validation    required fields, caller has a registered account, event exists
  2. duplicate     no live registration for (user, event)
  3. capacity      participant: currentSignups < capacity
                   volunteer:   currentVolunteers < volunteersNeeded
  4. conflict      no same-day overlap with the user's counted registrations
  5. quota         participant only, membership weekly limit

Steps 2-5 and the writes run while holding the event's lock, so the capacity
decision and the counter increment are one step as far as other requests
for that event are concerned.

All-or-nothing:
  append registration row  ->  fails: nothing written, UpstreamFailure
  write event counter      ->  fails: the appended row is deleted again,
                               then UpstreamFailure
Notification is scheduled only after both writes succeed and can never
change the outcome.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from eventdesk.core.exceptions import (
    DuplicateRegistration,
    EventDeskError,
    EventFull,
    EventNotFound,
    TimeConflict,
    UpstreamFailure,
    ValidationError,
    VolunteerSlotsFull,
)
from eventdesk.core.logging import get_logger
from eventdesk.core.metrics import admission_latency, record_admission
from eventdesk.domain.enums import RegistrationStatus, RegistrationType
from eventdesk.domain.records import Event, Registration, User
from eventdesk.rowstore.repository import SheetRepository
from eventdesk.schemas.registration import RegistrationCreate
from eventdesk.services.conflict import find_conflict
from eventdesk.services.counters import adjust_counter
from eventdesk.services.locks import EventLockRegistry
from eventdesk.services.notifications import NotificationDispatcher
from eventdesk.services.quota import check_weekly_quota

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_registration_id() -> str:
    return f"reg_{uuid.uuid4().hex}"


def find_live_registration(registrations: list[Registration], user_id: str, event_id: str):
    for registration in registrations:
        if registration.user_id == user_id and registration.event_id == event_id and registration.is_live:
            return registration
    return None


def ensure_not_duplicate(registrations: list[Registration], user_id: str, event_id: str) -> None:
    existing = find_live_registration(registrations, user_id, event_id)
    if existing is not None:
        raise DuplicateRegistration(
            "You are already registered for this event",
            details={"registration_id": existing.id, "status": existing.status.value},
        )


def ensure_capacity(event: Event, registration_type: RegistrationType) -> None:
    if registration_type == RegistrationType.PARTICIPANT:
        if event.is_full:
            raise EventFull(
                f"{event.title} is full",
                details={"event_id": event.id, "capacity": event.capacity,
                         "current_signups": event.current_signups},
            )
    elif event.volunteers_full:
        raise VolunteerSlotsFull(
            f"All volunteer slots for {event.title} are taken",
            details={"event_id": event.id, "volunteers_needed": event.volunteers_needed,
                     "current_volunteers": event.current_volunteers},
        )


def ensure_no_conflict(event: Event, user_registrations: list[Registration], events_by_id: dict[str, Event]) -> None:
    committed = [
        events_by_id[r.event_id]
        for r in user_registrations
        if r.is_counted and r.event_id in events_by_id
    ]
    clash = find_conflict(event, committed)
    if clash is not None:
        window = clash.start_time.strftime("%H:%M")
        if clash.end_time:
            window += "-" + clash.end_time.strftime("%H:%M")
        raise TimeConflict(
            f"This event overlaps with {clash.title} ({window}) on {clash.date:%d %b %Y}",
            details={"conflicting_event_id": clash.id, "date": clash.date.isoformat()},
        )


class AdmissionEngine:

    def __init__(
        self,
        repository: SheetRepository,
        locks: EventLockRegistry,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_registration_id,
    ):
        self.repository = repository
        self.locks = locks
        self.notifier = notifier
        self.clock = clock
        self.id_factory = id_factory

    async def admit(self, request: RegistrationCreate) -> Registration:
        started = time.perf_counter()
        try:
            registration, event = await self._admit(request)
        except UpstreamFailure:
            record_admission(UpstreamFailure.kind)
            raise
        except EventDeskError as e:
            record_admission(e.kind)
            logger.info(
                "admission_rejected",
                kind=e.kind,
                user_id=request.user_id,
                event_id=request.event_id,
                registration_type=request.registration_type.value,
            )
            raise
        finally:
            admission_latency.observe(time.perf_counter() - started)

        record_admission("admitted")
        logger.info(
            "registration_admitted",
            registration_id=registration.id,
            user_id=registration.user_id,
            event_id=event.id,
            registration_type=registration.registration_type.value,
            current_signups=event.current_signups,
            current_volunteers=event.current_volunteers,
        )
        try:
            self.notifier.dispatch_confirmation(registration, event)
        except Exception as e:
            logger.warning("notification_dispatch_failed", registration_id=registration.id, error=str(e))
        return registration

    async def load_applicant(self, request: RegistrationCreate) -> User:
        if not request.user_id or not request.event_id:
            raise ValidationError("Missing required fields", details={"fields": ["user_id", "event_id"]})
        if not request.user_name or not request.user_email:
            raise ValidationError("Missing required fields", details={"fields": ["user_name", "user_email"]})
        user = await self.repository.find_user(request.user_id)
        if user is None:
            raise ValidationError(
                "Please sign in with a registered account to sign up for events",
                details={"user_id": request.user_id},
            )
        return user

    async def _admit(self, request: RegistrationCreate) -> tuple[Registration, Event]:
        user = await self.load_applicant(request)

        async with self.locks.hold(request.event_id):
            events_by_id = {e.id: e for e in await self.repository.list_events()}
            event = events_by_id.get(request.event_id)
            if event is None:
                raise EventNotFound(f"Event {request.event_id} not found", details={"event_id": request.event_id})

            user_registrations = await self.repository.list_registrations(user_id=user.id)

            ensure_not_duplicate(user_registrations, user.id, event.id)
            ensure_capacity(event, request.registration_type)
            ensure_no_conflict(event, user_registrations, events_by_id)
            if request.registration_type == RegistrationType.PARTICIPANT:
                check_weekly_quota(user.id, user.membership_type, event,
                                   user_registrations, events_by_id.values())

            registration = self.build_registration(request, event, RegistrationStatus.REGISTERED)
            await self.repository.add_registration(registration)

            updated_event = adjust_counter(event, registration.registration_type, +1)
            try:
                await self.repository.save_event(updated_event)
            except EventDeskError:
                await self._undo_append(registration)
                raise
            return registration, updated_event

    def build_registration(self, request: RegistrationCreate, event: Event,
                           status: RegistrationStatus) -> Registration:
        return Registration(
            id=self.id_factory(),
            event_id=event.id,
            event_title=event.title,
            user_id=request.user_id,
            user_name=request.user_name,
            user_email=request.user_email,
            user_phone=request.user_phone,
            registration_type=request.registration_type,
            status=status,
            is_caregiver=request.is_caregiver,
            participant_name=request.participant_name if request.is_caregiver else "",
            registered_at=self.clock(),
            dietary_requirements=request.dietary_requirements,
            special_needs=request.special_needs,
            needs_wheelchair_access=request.needs_wheelchair_access,
            has_caregiver_accompanying=request.has_caregiver_accompanying,
            caregiver_name=request.caregiver_name,
            caregiver_phone=request.caregiver_phone,
        )

    async def _undo_append(self, registration: Registration) -> None:
        try:
            await self.repository.delete_registration(registration.id)
        except EventDeskError as e:
            # Row and counter now disagree; needs a manual fix in the sheet
            logger.error(
                "admission_rollback_failed",
                registration_id=registration.id,
                event_id=registration.event_id,
                error=e.message,
            )
        else:
            logger.warning("admission_rolled_back", registration_id=registration.id,
                           event_id=registration.event_id)
