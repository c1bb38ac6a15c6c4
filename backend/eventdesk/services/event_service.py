"""
Event service handling CRUD operations.
"""

import uuid
from datetime import date
from typing import Optional

from eventdesk.core.exceptions import ValidationError
from eventdesk.core.logging import get_logger
from eventdesk.domain.records import Event
from eventdesk.rowstore.repository import SheetRepository
from eventdesk.schemas.event import EventCreate, EventUpdate
from eventdesk.services.locks import EventLockRegistry
from eventdesk.services.recurrence import expand

logger = get_logger(__name__)

# Fields a staff edit may never overwrite
COUNTER_FIELDS = (
    "id",
    "current_signups",
    "current_volunteers",
    "current_waitlist",
    "is_recurring",
    "recurring_group_id",
)


def new_event_id() -> str:
    return f"evt_{uuid.uuid4().hex}"


class EventCatalogue:

    def __init__(self, repository: SheetRepository, locks: EventLockRegistry):
        self.repository = repository
        self.locks = locks

    async def list_events(
        self,
        page: int = 1,
        page_size: int = 50,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[str] = None,
    ) -> tuple[list[Event], int]:
        """List events ordered by date and start time, with optional filters and pagination."""
        events = await self.repository.list_events()
        if date_from is not None:
            events = [e for e in events if e.date >= date_from]
        if date_to is not None:
            events = [e for e in events if e.date <= date_to]
        if category:
            events = [e for e in events if e.category.lower() == category.lower()]

        events.sort(key=lambda e: (e.date, e.start_time))
        offset = (page - 1) * page_size
        return events[offset:offset + page_size], len(events)

    async def get_event(self, event_id: str) -> Event:
        return await self.repository.get_event(event_id)

    async def create_events(self, data: EventCreate) -> list[Event]:
        """
        Create a single event, or one event per occurrence of data.recurrence.
        A series is written in one batch append and shares a recurring_group_id.
        """
        fields = data.model_dump(exclude={"recurrence"})

        if data.recurrence is None:
            events = [Event(id=new_event_id(), **fields)]
        else:
            dates = expand(data.date, data.recurrence)
            if not dates:
                raise ValidationError(
                    "Recurrence rule produces no dates",
                    details={"date": data.date.isoformat(),
                             "until": data.recurrence.until.isoformat() if data.recurrence.until else None},
                )
            group_id = f"grp_{uuid.uuid4().hex}"
            events = [
                Event(id=new_event_id(), **{**fields, "date": day},
                      is_recurring=True, recurring_group_id=group_id)
                for day in dates
            ]

        await self.repository.add_events(events)
        logger.info(
            "events_created",
            count=len(events),
            title=events[0].title,
            first_date=events[0].date.isoformat(),
            recurring_group_id=events[0].recurring_group_id,
        )
        return events

    async def update_event(self, event_id: str, data: EventUpdate) -> Event:
        # Under the event lock so a concurrent admission's counter write is not lost
        async with self.locks.hold(event_id):
            current = await self.repository.get_event(event_id)
            preserved = {name: getattr(current, name) for name in COUNTER_FIELDS}
            updated = Event(**{**data.model_dump(), **preserved})
            await self.repository.save_event(updated)

        logger.info("event_updated", event_id=event_id, title=updated.title)
        return updated

    async def delete_event(self, event_id: str) -> None:
        """Hard delete. Registrations for the event are left as they are."""
        async with self.locks.hold(event_id):
            await self.repository.delete_event(event_id)
        logger.info("event_deleted", event_id=event_id)
