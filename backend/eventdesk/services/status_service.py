"""
Attendance and status tracking.

Status changes go through the transition table in domain.status and keep the
event counters in step:

  registered -> cancelled    counter - 1 (floor 0)
  cancelled  -> registered   reinstatement: duplicate, capacity, time
                             conflict and weekly quota re-checked,
                             counter + 1
  waitlist   -> cancelled    approved entries free their position, the rest
                             of the list is renumbered
  registered -> attended     stamps attendedAt

Removal is not a status: the registration is archived into RemovalHistory
and the live row deleted, with the same counter handling as a cancellation.
"""

import uuid
from datetime import datetime
from typing import Callable, Optional

from eventdesk.core.exceptions import EventDeskError, PermissionDenied, ValidationError
from eventdesk.core.logging import get_logger
from eventdesk.core.metrics import record_transition
from eventdesk.core.security import Identity
from eventdesk.domain.enums import RegistrationStatus, RegistrationType
from eventdesk.domain.records import Event, Registration, RemovalRecord
from eventdesk.domain.status import ensure_transition
from eventdesk.rowstore.repository import SheetRepository
from eventdesk.services.admission_service import (
    ensure_capacity,
    ensure_no_conflict,
    ensure_not_duplicate,
    utcnow,
)
from eventdesk.services.counters import adjust_counter, adjust_waitlist
from eventdesk.services.locks import EventLockRegistry
from eventdesk.services.quota import check_weekly_quota
from eventdesk.services.waitlist_service import WaitlistManager

logger = get_logger(__name__)

# Status changes a participant may make on their own registration
SELF_SERVICE_STATUSES = frozenset({RegistrationStatus.CANCELLED})


def release_place(event: Event, registration: Registration) -> tuple[Event, bool]:
    """
    Counter changes for a registration leaving the event.
    Returns the updated event and whether the waitlist needs renumbering.
    """
    if registration.is_counted:
        return adjust_counter(event, registration.registration_type, -1), False
    if registration.is_approved_waitlist:
        return adjust_waitlist(event, -1), True
    return event, False


class StatusTracker:

    def __init__(
        self,
        repository: SheetRepository,
        locks: EventLockRegistry,
        waitlist: WaitlistManager,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.locks = locks
        self.waitlist = waitlist
        self.clock = clock

    def _authorize(self, registration: Registration, target: RegistrationStatus, actor: Identity) -> None:
        if actor.is_admin():
            return
        if registration.user_id != actor.user_id:
            raise PermissionDenied("You can only change your own registrations")
        if target not in SELF_SERVICE_STATUSES:
            raise PermissionDenied("Only staff can make this change",
                                   details={"status": target.value})

    async def change_status(self, registration_id: str, target: RegistrationStatus,
                            actor: Identity) -> Registration:
        event_id = (await self.repository.get_registration(registration_id)).event_id

        async with self.locks.hold(event_id):
            registration = await self.repository.get_registration(registration_id)
            self._authorize(registration, target, actor)
            current = registration.status

            if current == RegistrationStatus.WAITLIST and target == RegistrationStatus.REGISTERED:
                raise ValidationError("Waitlist entries are confirmed by promotion",
                                      details={"registration_id": registration_id})
            ensure_transition(current, target)

            event = await self.repository.find_event(event_id)
            updated_event = event
            renumber = False
            changes: dict = {"status": target}

            if target == RegistrationStatus.CANCELLED:
                if event is not None:
                    updated_event, renumber = release_place(event, registration)
                changes["waitlist_position"] = None
            elif target == RegistrationStatus.REGISTERED:
                # Reinstatement goes through the same checks as a fresh admission
                if event is None:
                    raise ValidationError("Cannot reinstate a registration for a deleted event",
                                          details={"event_id": event_id})
                events_by_id = {e.id: e for e in await self.repository.list_events()}
                others = [r for r in await self.repository.list_registrations(user_id=registration.user_id)
                          if r.id != registration.id]
                ensure_not_duplicate(others, registration.user_id, event_id)
                ensure_capacity(event, registration.registration_type)
                ensure_no_conflict(event, others, events_by_id)
                if registration.registration_type == RegistrationType.PARTICIPANT:
                    user = await self.repository.get_user(registration.user_id)
                    check_weekly_quota(user.id, user.membership_type, event,
                                       others, events_by_id.values())
                updated_event = adjust_counter(event, registration.registration_type, +1)
            elif target == RegistrationStatus.ATTENDED:
                changes["attended_at"] = self.clock()

            updated = registration.model_copy(update=changes)
            await self.repository.save_registration(updated)
            if updated_event is not event:
                try:
                    await self.repository.save_event(updated_event)
                except EventDeskError:
                    await self._restore(registration)
                    raise
            if renumber:
                await self.waitlist.renumber(event_id)

        record_transition(current.value, target.value)
        logger.info(
            "registration_status_changed",
            registration_id=registration_id,
            event_id=event_id,
            from_status=current.value,
            to_status=target.value,
            actor=actor.user_id,
        )
        return updated

    async def cancel(self, registration_id: str, actor: Identity) -> Registration:
        return await self.change_status(registration_id, RegistrationStatus.CANCELLED, actor)

    async def remove(self, registration_id: str, actor: Identity, reason: str = "") -> RemovalRecord:
        """Archive then hard-delete a registration. Staff only."""
        if not actor.is_admin():
            raise PermissionDenied("Only staff can remove registrations")
        event_id = (await self.repository.get_registration(registration_id)).event_id

        async with self.locks.hold(event_id):
            registration = await self.repository.get_registration(registration_id)
            record = RemovalRecord(
                id=f"rem_{uuid.uuid4().hex}",
                original_registration_id=registration.id,
                event_id=registration.event_id,
                event_title=registration.event_title,
                user_id=registration.user_id,
                user_name=registration.user_name,
                user_email=registration.user_email,
                user_phone=registration.user_phone,
                registration_type=registration.registration_type,
                is_caregiver=registration.is_caregiver,
                participant_name=registration.participant_name,
                removed_by=actor.user_id,
                reason=reason,
                removed_at=self.clock(),
                snapshot=registration.model_dump_json(),
            )
            # History first; withdrawn again if the delete fails
            await self.repository.add_removal(record)
            try:
                await self.repository.delete_registration(registration.id)
            except EventDeskError:
                await self._withdraw_removal(record)
                raise

            event = await self.repository.find_event(event_id)
            if event is not None:
                updated_event, renumber = release_place(event, registration)
                if updated_event is not event:
                    await self.repository.save_event(updated_event)
                if renumber:
                    await self.waitlist.renumber(event_id)

        logger.info(
            "registration_removed",
            registration_id=registration_id,
            event_id=event_id,
            status=registration.status.value,
            removed_by=actor.user_id,
            reason=reason,
        )
        return record

    async def removal_history(self, event_id: Optional[str] = None) -> list[RemovalRecord]:
        return await self.repository.list_removals(event_id=event_id)

    async def _restore(self, registration: Registration) -> None:
        try:
            await self.repository.save_registration(registration)
        except EventDeskError as e:
            logger.error("status_rollback_failed", registration_id=registration.id, error=e.message)

    async def _withdraw_removal(self, record: RemovalRecord) -> None:
        try:
            await self.repository.delete_removal(record.id)
        except EventDeskError as e:
            logger.error("removal_rollback_failed", removal_id=record.id,
                         registration_id=record.original_registration_id, error=e.message)
