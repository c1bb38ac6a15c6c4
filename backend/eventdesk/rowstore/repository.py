"""
Typed repository over the row store.

Callers get records, never raw rows. Every write holds a per-table lock;
for updates and deletes it covers the locate+write pair: deleting a row
shifts the indexes of every later row, so an index found before an
unrelated delete or append could otherwise point at the wrong row.

Any exception coming out of the backend is logged and re-raised as
UpstreamFailure.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

from eventdesk.core.exceptions import (
    EventDeskError,
    EventNotFound,
    NotFound,
    RegistrationNotFound,
    UpstreamFailure,
    UserNotFound,
)
from eventdesk.core.logging import get_logger
from eventdesk.core.metrics import row_store_errors
from eventdesk.domain.records import Event, Registration, RemovalRecord, User
from eventdesk.rowstore.interface import EVENTS, REGISTRATIONS, REMOVAL_HISTORY, TABLES, USERS, RowStore
from eventdesk.rowstore.mappers import (
    EVENT_MAPPER,
    REGISTRATION_MAPPER,
    REMOVAL_MAPPER,
    USER_MAPPER,
    RowMapper,
)

logger = get_logger(__name__)


class SheetRepository:

    def __init__(self, store: RowStore):
        self.store = store
        self._table_locks = {table: asyncio.Lock() for table in TABLES}

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except EventDeskError:
            raise
        except Exception as e:
            row_store_errors.labels(operation=operation).inc()
            logger.error("row_store_failed", operation=operation, error=str(e), error_type=type(e).__name__)
            raise UpstreamFailure(cause=e) from e

    async def _read_all(self, table: str, mapper: RowMapper) -> list[tuple[int, object]]:
        async with self._guard(f"read:{table}"):
            rows = await self.store.read_range(table)
            # Blank rows (cleared by hand in the sheet) have no id
            return [(i, mapper.from_row(row)) for i, row in enumerate(rows) if row and row[0]]

    async def _locate(self, table: str, mapper: RowMapper, record_id: str) -> Optional[tuple[int, object]]:
        for index, record in await self._read_all(table, mapper):
            if record.id == record_id:
                return index, record
        return None

    async def _replace(self, table: str, mapper: RowMapper, record, not_found) -> None:
        async with self._table_locks[table]:
            located = await self._locate(table, mapper, record.id)
            if located is None:
                raise not_found
            async with self._guard(f"update:{table}"):
                await self.store.update_range(table, located[0], mapper.to_row(record))

    async def _delete(self, table: str, mapper: RowMapper, record_id: str, not_found) -> None:
        async with self._table_locks[table]:
            located = await self._locate(table, mapper, record_id)
            if located is None:
                raise not_found
            async with self._guard(f"delete:{table}"):
                await self.store.delete_row(table, located[0])

    # Events

    async def list_events(self) -> list[Event]:
        return [event for _, event in await self._read_all(EVENTS, EVENT_MAPPER)]

    async def find_event(self, event_id: str) -> Optional[Event]:
        located = await self._locate(EVENTS, EVENT_MAPPER, event_id)
        return located[1] if located else None

    async def get_event(self, event_id: str) -> Event:
        event = await self.find_event(event_id)
        if event is None:
            raise EventNotFound(f"Event {event_id} not found", details={"event_id": event_id})
        return event

    async def add_events(self, events: Sequence[Event]) -> None:
        async with self._table_locks[EVENTS], self._guard(f"append:{EVENTS}"):
            if len(events) == 1:
                await self.store.append_row(EVENTS, EVENT_MAPPER.to_row(events[0]))
            else:
                await self.store.append_rows(EVENTS, [EVENT_MAPPER.to_row(e) for e in events])

    async def save_event(self, event: Event) -> None:
        await self._replace(EVENTS, EVENT_MAPPER, event,
                            EventNotFound(f"Event {event.id} not found", details={"event_id": event.id}))

    async def delete_event(self, event_id: str) -> None:
        await self._delete(EVENTS, EVENT_MAPPER, event_id,
                           EventNotFound(f"Event {event_id} not found", details={"event_id": event_id}))

    # Registrations

    async def list_registrations(
        self,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> list[Registration]:
        registrations = [r for _, r in await self._read_all(REGISTRATIONS, REGISTRATION_MAPPER)]
        if user_id is not None:
            registrations = [r for r in registrations if r.user_id == user_id]
        if event_id is not None:
            registrations = [r for r in registrations if r.event_id == event_id]
        return registrations

    async def get_registration(self, registration_id: str) -> Registration:
        located = await self._locate(REGISTRATIONS, REGISTRATION_MAPPER, registration_id)
        if located is None:
            raise RegistrationNotFound(
                f"Registration {registration_id} not found",
                details={"registration_id": registration_id},
            )
        return located[1]

    async def add_registration(self, registration: Registration) -> None:
        async with self._table_locks[REGISTRATIONS], self._guard(f"append:{REGISTRATIONS}"):
            await self.store.append_row(REGISTRATIONS, REGISTRATION_MAPPER.to_row(registration))

    async def save_registration(self, registration: Registration) -> None:
        await self._replace(
            REGISTRATIONS, REGISTRATION_MAPPER, registration,
            RegistrationNotFound(f"Registration {registration.id} not found",
                                 details={"registration_id": registration.id}),
        )

    async def delete_registration(self, registration_id: str) -> None:
        await self._delete(
            REGISTRATIONS, REGISTRATION_MAPPER, registration_id,
            RegistrationNotFound(f"Registration {registration_id} not found",
                                 details={"registration_id": registration_id}),
        )

    # Users

    async def list_users(self) -> list[User]:
        return [user for _, user in await self._read_all(USERS, USER_MAPPER)]

    async def find_user(self, user_id: str) -> Optional[User]:
        located = await self._locate(USERS, USER_MAPPER, user_id)
        return located[1] if located else None

    async def get_user(self, user_id: str) -> User:
        user = await self.find_user(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found", details={"user_id": user_id})
        return user

    async def add_user(self, user: User) -> None:
        async with self._table_locks[USERS], self._guard(f"append:{USERS}"):
            await self.store.append_row(USERS, USER_MAPPER.to_row(user))

    async def save_user(self, user: User) -> None:
        await self._replace(USERS, USER_MAPPER, user,
                            UserNotFound(f"User {user.id} not found", details={"user_id": user.id}))

    async def delete_user(self, user_id: str) -> None:
        await self._delete(USERS, USER_MAPPER, user_id,
                           UserNotFound(f"User {user_id} not found", details={"user_id": user_id}))

    # Removal history

    async def add_removal(self, record: RemovalRecord) -> None:
        async with self._table_locks[REMOVAL_HISTORY], self._guard(f"append:{REMOVAL_HISTORY}"):
            await self.store.append_row(REMOVAL_HISTORY, REMOVAL_MAPPER.to_row(record))

    async def delete_removal(self, record_id: str) -> None:
        await self._delete(REMOVAL_HISTORY, REMOVAL_MAPPER, record_id,
                           NotFound(f"Removal record {record_id} not found", details={"removal_id": record_id}))

    async def list_removals(self, event_id: Optional[str] = None) -> list[RemovalRecord]:
        records = [r for _, r in await self._read_all(REMOVAL_HISTORY, REMOVAL_MAPPER)]
        if event_id is not None:
            records = [r for r in records if r.event_id == event_id]
        return records
