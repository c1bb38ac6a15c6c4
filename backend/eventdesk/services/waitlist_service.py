"""
Waitlist management.

An entry moves through:

    request  -> pending   (status=waitlist, no position)
    approve  -> approved  (status=waitlist, position = approved count + 1)
    reject   -> rejected  (terminal)
    promote  -> registered (position cleared, promotedAt set)

Promotion is always an explicit staff action; cancelling a registration never
promotes anyone on its own. After any approved entry leaves the list the
remaining positions are renumbered 1..n keeping their relative order.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from eventdesk.core.exceptions import (
    EventDeskError,
    EventFull,
    RegistrationNotFound,
    ValidationError,
)
from eventdesk.core.logging import get_logger
from eventdesk.core.metrics import record_transition, record_waitlist_action
from eventdesk.domain.enums import RegistrationStatus, RegistrationType
from eventdesk.domain.records import Registration
from eventdesk.domain.status import ensure_transition
from eventdesk.rowstore.repository import SheetRepository
from eventdesk.schemas.registration import RegistrationCreate
from eventdesk.services.admission_service import AdmissionEngine, ensure_not_duplicate, utcnow
from eventdesk.services.counters import adjust_counter, adjust_waitlist
from eventdesk.services.locks import EventLockRegistry

logger = get_logger(__name__)

UNPOSITIONED = 999


def approved_entries(registrations: list[Registration]) -> list[Registration]:
    """Approved entries in waitlist order."""
    return sorted(
        (r for r in registrations if r.is_approved_waitlist),
        key=lambda r: (r.waitlist_position or UNPOSITIONED, r.registered_at),
    )


def pending_requests(registrations: list[Registration]) -> list[Registration]:
    return sorted((r for r in registrations if r.is_pending_waitlist), key=lambda r: r.registered_at)


@dataclass
class WaitlistView:
    event_id: str
    approved: list[Registration]
    pending: list[Registration]


class WaitlistManager:

    def __init__(
        self,
        repository: SheetRepository,
        locks: EventLockRegistry,
        admission: AdmissionEngine,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.locks = locks
        self.admission = admission
        self.clock = clock

    async def view(self, event_id: str) -> WaitlistView:
        await self.repository.get_event(event_id)
        registrations = await self.repository.list_registrations(event_id=event_id)
        return WaitlistView(
            event_id=event_id,
            approved=approved_entries(registrations),
            pending=pending_requests(registrations),
        )

    async def request(self, request: RegistrationCreate) -> Registration:
        """Record a waitlist request for a full event. Staff approve it later."""
        if request.registration_type != RegistrationType.PARTICIPANT:
            raise ValidationError("Only participants can join a waitlist")
        user = await self.admission.load_applicant(request)

        async with self.locks.hold(request.event_id):
            event = await self.repository.get_event(request.event_id)
            if not event.is_full:
                raise ValidationError(
                    "This event still has places. Register directly instead.",
                    details={"event_id": event.id},
                )
            ensure_not_duplicate(await self.repository.list_registrations(user_id=user.id), user.id, event.id)

            registration = self.admission.build_registration(request, event, RegistrationStatus.WAITLIST)
            await self.repository.add_registration(registration)

        record_waitlist_action("requested")
        logger.info("waitlist_requested", registration_id=registration.id, event_id=event.id, user_id=user.id)
        return registration

    async def _waitlisted(self, registration_id: str) -> Registration:
        registration = await self.repository.get_registration(registration_id)
        if registration.status != RegistrationStatus.WAITLIST:
            raise ValidationError(
                "Registration is not on the waitlist",
                details={"registration_id": registration_id, "status": registration.status.value},
            )
        return registration

    async def approve(self, registration_id: str) -> Registration:
        event_id = (await self.repository.get_registration(registration_id)).event_id

        async with self.locks.hold(event_id):
            registration = await self._waitlisted(registration_id)
            if registration.waitlist_position is not None:
                raise ValidationError(
                    "Waitlist request is already approved",
                    details={"registration_id": registration_id,
                             "waitlist_position": registration.waitlist_position},
                )
            event = await self.repository.get_event(event_id)
            siblings = await self.repository.list_registrations(event_id=event_id)
            position = len(approved_entries(siblings)) + 1

            approved = registration.model_copy(update={"waitlist_position": position})
            await self.repository.save_registration(approved)
            try:
                await self.repository.save_event(adjust_waitlist(event, +1))
            except EventDeskError:
                await self._restore(registration)
                raise

        record_waitlist_action("approved")
        logger.info("waitlist_approved", registration_id=registration_id, event_id=event_id, position=position)
        return approved

    async def reject(self, registration_id: str) -> Registration:
        event_id = (await self.repository.get_registration(registration_id)).event_id

        async with self.locks.hold(event_id):
            registration = await self._waitlisted(registration_id)
            ensure_transition(registration.status, RegistrationStatus.REJECTED)
            was_approved = registration.is_approved_waitlist

            rejected = registration.model_copy(
                update={"status": RegistrationStatus.REJECTED, "waitlist_position": None}
            )
            await self.repository.save_registration(rejected)
            if was_approved:
                event = await self.repository.find_event(event_id)
                if event is not None:
                    await self.repository.save_event(adjust_waitlist(event, -1))
                await self.renumber(event_id)

        record_transition(RegistrationStatus.WAITLIST.value, RegistrationStatus.REJECTED.value)
        record_waitlist_action("rejected")
        logger.info("waitlist_rejected", registration_id=registration_id, event_id=event_id,
                    was_approved=was_approved)
        return rejected

    async def promote(self, event_id: str, registration_id: Optional[str] = None) -> Registration:
        """
        Move an approved waitlist entry into a confirmed place.
        Defaults to the lowest position. Requires a free place at promotion time.
        """
        async with self.locks.hold(event_id):
            event = await self.repository.get_event(event_id)
            queue = approved_entries(await self.repository.list_registrations(event_id=event_id))

            if registration_id is None:
                if not queue:
                    raise ValidationError("Nobody is on the waitlist for this event",
                                          details={"event_id": event_id})
                target = queue[0]
            else:
                target = next((r for r in queue if r.id == registration_id), None)
                if target is None:
                    raise RegistrationNotFound(
                        "Registration not found or not on the waitlist",
                        details={"registration_id": registration_id, "event_id": event_id},
                    )

            if event.is_full:
                raise EventFull(
                    f"{event.title} is at full capacity",
                    details={"event_id": event_id, "capacity": event.capacity,
                             "current_signups": event.current_signups},
                )
            ensure_transition(target.status, RegistrationStatus.REGISTERED)

            promoted = target.model_copy(update={
                "status": RegistrationStatus.REGISTERED,
                "waitlist_position": None,
                "promoted_at": self.clock(),
            })
            await self.repository.save_registration(promoted)
            updated_event = adjust_waitlist(adjust_counter(event, RegistrationType.PARTICIPANT, +1), -1)
            try:
                await self.repository.save_event(updated_event)
            except EventDeskError:
                await self._restore(target)
                raise
            await self.renumber(event_id)

        record_transition(RegistrationStatus.WAITLIST.value, RegistrationStatus.REGISTERED.value)
        record_waitlist_action("promoted")
        logger.info(
            "waitlist_promoted",
            registration_id=promoted.id,
            event_id=event_id,
            from_position=target.waitlist_position,
            current_signups=updated_event.current_signups,
            current_waitlist=updated_event.current_waitlist,
        )
        return promoted

    async def renumber(self, event_id: str) -> list[Registration]:
        """
        Close gaps in approved positions: 1..n, relative order kept.
        Caller must hold the event lock.
        """
        queue = approved_entries(await self.repository.list_registrations(event_id=event_id))
        renumbered = []
        for position, entry in enumerate(queue, start=1):
            if entry.waitlist_position != position:
                entry = entry.model_copy(update={"waitlist_position": position})
                await self.repository.save_registration(entry)
            renumbered.append(entry)
        return renumbered

    async def _restore(self, registration: Registration) -> None:
        try:
            await self.repository.save_registration(registration)
        except EventDeskError as e:
            logger.error("waitlist_rollback_failed", registration_id=registration.id, error=e.message)
