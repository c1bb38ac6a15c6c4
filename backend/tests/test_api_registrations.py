"""
Tests for registration endpoints: admission over HTTP, status changes,
removals and the error envelope.
"""

from datetime import date, time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from eventdesk.core.config import get_settings
from eventdesk.domain.enums import MembershipType, UserStatus
from eventdesk.main import create_app
from eventdesk.services.container import assemble
from eventdesk.services.notifications import NotificationDispatcher
from eventdesk.services.rate_limit import InMemoryRateLimitStore, RateLimiter

from factories import auth_headers, make_event, make_user


def payload(event_id="evt_1", **overrides):
    body = {
        "event_id": event_id,
        "user_name": "Alice",
        "user_email": "alice@example.com",
        "user_phone": "91234567",
        "registration_type": "participant",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_register_for_event(client: AsyncClient, alice_headers, alice, test_event, services, sender):
    """Successful admission increments the signup counter and sends a confirmation."""
    response = await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == alice.id
    assert data["status"] == "registered"
    assert data["event_title"] == "Art Jamming"
    assert response.headers["X-Request-ID"]

    event_response = await client.get(f"/api/v1/events/{test_event.id}")
    assert event_response.json()["current_signups"] == 1

    await services.notifier.drain()
    ((recipient, message),) = sender.sent
    assert recipient == "91234567"
    assert "Art Jamming" in message


@pytest.mark.asyncio
async def test_register_unauthenticated(client: AsyncClient, test_event):
    response = await client.post("/api/v1/registrations", json=payload())
    assert response.status_code == 401
    assert response.json()["error"]["kind"] == "Unauthorized"


@pytest.mark.asyncio
async def test_register_full_event(client: AsyncClient, alice_headers, alice, full_event):
    response = await client.post("/api/v1/registrations", json=payload(full_event.id), headers=alice_headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "EventFull"
    assert error["details"]["capacity"] == 2


@pytest.mark.asyncio
async def test_duplicate_registration(client: AsyncClient, alice_headers, alice, test_event):
    first = await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)
    assert second.status_code == 400
    assert second.json()["error"]["kind"] == "DuplicateRegistration"


@pytest.mark.asyncio
async def test_overlapping_event_is_a_time_conflict(client: AsyncClient, alice_headers, alice, test_event, repository):
    await repository.add_events([make_event(id="evt_2", title="Pottery", start_time=time(10, 0), end_time=time(12, 0))])
    await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)

    response = await client.post("/api/v1/registrations", json=payload("evt_2"), headers=alice_headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "TimeConflict"
    assert error["details"]["conflicting_event_id"] == "evt_1"


@pytest.mark.asyncio
async def test_weekly_quota_exceeded(client: AsyncClient, repository, test_event):
    carol = make_user("u_carol", membership_type=MembershipType.ONCE_WEEKLY)
    await repository.add_user(carol)
    await repository.add_events([make_event(id="evt_wed", title="Choir", date=date(2030, 3, 6))])
    headers = auth_headers(carol.id)
    body = {"user_name": "Carol", "user_email": "carol@example.com"}

    first = await client.post("/api/v1/registrations", json=payload(**body), headers=headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/registrations", json=payload("evt_wed", **body), headers=headers)
    assert second.status_code == 400
    assert second.json()["error"]["kind"] == "WeeklyQuotaExceeded"

    # Volunteering does not count towards the quota
    volunteer = await client.post(
        "/api/v1/registrations",
        json=payload("evt_wed", registration_type="volunteer", **body),
        headers=headers,
    )
    assert volunteer.status_code == 201


@pytest.mark.asyncio
async def test_invalid_email_returns_field_errors(client: AsyncClient, alice_headers, alice, test_event):
    response = await client.post(
        "/api/v1/registrations",
        json=payload(user_email="not-an-email"),
        headers=alice_headers,
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "ValidationError"
    assert [e["field"] for e in error["details"]["errors"]] == ["user_email"]


@pytest.mark.asyncio
async def test_unknown_event_returns_404(client: AsyncClient, alice_headers, alice):
    response = await client.post("/api/v1/registrations", json=payload("evt_missing"), headers=alice_headers)
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "EventNotFound"


@pytest.mark.asyncio
async def test_pending_account_cannot_register(client: AsyncClient, repository, test_event):
    await repository.add_user(make_user("u_dan", status=UserStatus.PENDING))

    response = await client.post("/api/v1/registrations", json=payload(), headers=auth_headers("u_dan"))

    assert response.status_code == 403
    assert "awaiting approval" in response.json()["error"]["message"]


@pytest.mark.asyncio
async def test_participant_cannot_register_someone_else(client: AsyncClient, alice_headers, alice, bob, test_event):
    response = await client.post("/api/v1/registrations", json=payload(user_id=bob.id), headers=alice_headers)

    assert response.status_code == 201
    assert response.json()["user_id"] == alice.id


@pytest.mark.asyncio
async def test_staff_registers_on_behalf_of_participant(client: AsyncClient, staff_headers, staff_user, bob, test_event):
    response = await client.post(
        "/api/v1/registrations",
        json=payload(user_id=bob.id, user_name="Bob", user_email="bob@example.com"),
        headers=staff_headers,
    )

    assert response.status_code == 201
    assert response.json()["user_id"] == bob.id


@pytest.mark.asyncio
async def test_participant_cancels_own_registration(client: AsyncClient, alice_headers, alice, test_event):
    created = (await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)).json()

    response = await client.patch(
        f"/api/v1/registrations/{created['id']}",
        json={"status": "cancelled"},
        headers=alice_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    event = (await client.get(f"/api/v1/events/{test_event.id}")).json()
    assert event["current_signups"] == 0


@pytest.mark.asyncio
async def test_only_staff_mark_attendance(client: AsyncClient, alice_headers, staff_headers, alice, test_event):
    created = (await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)).json()
    url = f"/api/v1/registrations/{created['id']}"

    denied = await client.patch(url, json={"status": "attended"}, headers=alice_headers)
    assert denied.status_code == 403

    marked = await client.patch(url, json={"status": "attended"}, headers=staff_headers)
    assert marked.status_code == 200
    assert marked.json()["attended_at"] is not None


@pytest.mark.asyncio
async def test_invalid_transition_is_rejected(client: AsyncClient, alice_headers, staff_headers, alice, test_event):
    created = (await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)).json()
    url = f"/api/v1/registrations/{created['id']}"
    await client.patch(url, json={"status": "cancelled"}, headers=alice_headers)

    response = await client.patch(url, json={"status": "attended"}, headers=staff_headers)

    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "ValidationError"


@pytest.mark.asyncio
async def test_staff_removal_is_archived(client: AsyncClient, alice_headers, staff_headers, alice, test_event):
    created = (await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)).json()

    response = await client.request(
        "DELETE",
        f"/api/v1/registrations/{created['id']}",
        json={"reason": "Duplicate sign-up"},
        headers=staff_headers,
    )

    assert response.status_code == 200
    record = response.json()
    assert record["original_registration_id"] == created["id"]
    assert record["reason"] == "Duplicate sign-up"

    history = await client.get("/api/v1/registrations/history", params={"event_id": test_event.id},
                               headers=staff_headers)
    assert [r["id"] for r in history.json()] == [record["id"]]

    listed = await client.get("/api/v1/registrations", params={"event_id": test_event.id}, headers=staff_headers)
    assert listed.json() == []
    event = (await client.get(f"/api/v1/events/{test_event.id}")).json()
    assert event["current_signups"] == 0


@pytest.mark.asyncio
async def test_participant_cannot_remove(client: AsyncClient, alice_headers, alice, test_event):
    created = (await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)).json()
    response = await client.delete(f"/api/v1/registrations/{created['id']}", headers=alice_headers)
    assert response.status_code == 403
    assert response.json()["error"]["kind"] == "PermissionDenied"


@pytest.mark.asyncio
async def test_participants_only_list_their_own(client: AsyncClient, alice_headers, alice, bob, test_event):
    await client.post("/api/v1/registrations", json=payload(), headers=alice_headers)
    await client.post(
        "/api/v1/registrations",
        json=payload(user_name="Bob", user_email="bob@example.com"),
        headers=auth_headers(bob.id),
    )

    own = await client.get("/api/v1/registrations", headers=alice_headers)
    assert [r["user_id"] for r in own.json()] == [alice.id]

    other = await client.get("/api/v1/registrations", params={"user_id": bob.id}, headers=alice_headers)
    assert other.status_code == 403


@pytest_asyncio.fixture
async def limited_client(store, alice, test_event):
    limiter = RateLimiter(
        InMemoryRateLimitStore(),
        {"POST:/api/v1/registrations": 1, "default": 100},
    )
    services = assemble(store, NotificationDispatcher([], get_settings().DEFAULT_CONFIRMATION_TEMPLATE), limiter)
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_rate_limit_returns_429_with_retry_after(limited_client: AsyncClient, alice_headers):
    first = await limited_client.post("/api/v1/registrations", json=payload(), headers=alice_headers)
    assert first.status_code == 201

    second = await limited_client.post("/api/v1/registrations", json=payload(), headers=alice_headers)
    assert second.status_code == 429
    assert second.json()["error"]["kind"] == "RateLimited"
    assert int(second.headers["Retry-After"]) > 0

    # Other routes are counted separately
    assert (await limited_client.get("/api/v1/events")).status_code == 200
