"""
Pytest fixtures for the row store, engine services, client, and identities.

Every test gets a fresh InMemoryRowStore, so nothing leaks between tests and
no database is needed. The API client runs the real app over that store.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from eventdesk.core.config import get_settings
from eventdesk.core.security import Identity
from eventdesk.domain.enums import UserRole
from eventdesk.domain.records import Event, User
from eventdesk.main import create_app
from eventdesk.rowstore import InMemoryRowStore, SheetRepository
from eventdesk.services.container import Services, assemble
from eventdesk.services.notifications import NotificationDispatcher
from eventdesk.services.rate_limit import InMemoryRateLimitStore, RateLimiter

from factories import (
    ALICE_ID,
    BOB_ID,
    STAFF_ID,
    RecordingSender,
    auth_headers,
    make_event,
    make_user,
)


@pytest.fixture
def store() -> InMemoryRowStore:
    return InMemoryRowStore()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def services(store: InMemoryRowStore, sender: RecordingSender) -> Services:
    notifier = NotificationDispatcher([sender], get_settings().DEFAULT_CONFIRMATION_TEMPLATE)
    # Limits high enough that API tests never trip them
    limiter = RateLimiter(InMemoryRateLimitStore(), {"default": 10_000})
    return assemble(store, notifier, limiter)


@pytest.fixture
def repository(services: Services) -> SheetRepository:
    return services.repository


@pytest_asyncio.fixture
async def alice(repository: SheetRepository) -> User:
    user = make_user(ALICE_ID)
    await repository.add_user(user)
    return user


@pytest_asyncio.fixture
async def bob(repository: SheetRepository) -> User:
    user = make_user(BOB_ID, phone="81234567")
    await repository.add_user(user)
    return user


@pytest_asyncio.fixture
async def staff_user(repository: SheetRepository) -> User:
    user = make_user(STAFF_ID, role=UserRole.STAFF)
    await repository.add_user(user)
    return user


@pytest_asyncio.fixture
async def test_event(repository: SheetRepository) -> Event:
    """Event with 10 participant places and 2 volunteer slots."""
    event = make_event()
    await repository.add_events([event])
    return event


@pytest_asyncio.fixture
async def full_event(repository: SheetRepository) -> Event:
    """Event with capacity 2 and both places already counted."""
    event = make_event(id="evt_full", title="Cooking Class", capacity=2, current_signups=2)
    await repository.add_events([event])
    return event


@pytest.fixture
def staff() -> Identity:
    return Identity(user_id=STAFF_ID, role="staff")


@pytest.fixture
def alice_headers() -> dict:
    return auth_headers(ALICE_ID)


@pytest.fixture
def staff_headers() -> dict:
    return auth_headers(STAFF_ID, role="staff")


@pytest_asyncio.fixture
async def client(services: Services) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the test row store."""
    app = create_app(services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await services.notifier.drain()
