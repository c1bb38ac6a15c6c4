"""
Tests for event endpoints.
"""

import pytest
from httpx import AsyncClient

from factories import make_event

EVENT_BODY = {
    "title": "Tea Session",
    "description": "Afternoon tea",
    "date": "2030-03-05",
    "start_time": "15:00",
    "end_time": "16:30",
    "location": "Community Room",
    "category": "social",
    "capacity": 12,
}


@pytest.mark.asyncio
async def test_list_events_is_public_and_ordered(client: AsyncClient, repository):
    await repository.add_events([
        make_event(id="evt_b", date=make_event().date.replace(day=6)),
        make_event(id="evt_a"),
    ])

    response = await client.get("/api/v1/events")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["id"] for e in data["events"]] == ["evt_a", "evt_b"]


@pytest.mark.asyncio
async def test_list_events_filters_by_date_and_category(client: AsyncClient, repository):
    await repository.add_events([
        make_event(id="evt_art", category="Arts"),
        make_event(id="evt_later", date=make_event().date.replace(day=20), category="arts"),
        make_event(id="evt_sport", category="Sports"),
    ])

    response = await client.get("/api/v1/events", params={"category": "arts", "date_to": "2030-03-10"})

    assert [e["id"] for e in response.json()["events"]] == ["evt_art"]


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    response = await client.get("/api/v1/events/evt_missing")
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "EventNotFound"


@pytest.mark.asyncio
async def test_staff_creates_event(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/events", json=EVENT_BODY, headers=staff_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["recurring_group_id"] is None
    (event,) = data["events"]
    assert event["id"].startswith("evt_")
    assert event["capacity"] == 12
    assert event["current_signups"] == 0
    assert event["is_full"] is False


@pytest.mark.asyncio
async def test_zero_capacity_means_unlimited(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/events", json={**EVENT_BODY, "capacity": 0}, headers=staff_headers)
    assert response.json()["events"][0]["capacity"] is None


@pytest.mark.asyncio
async def test_staff_creates_recurring_series(client: AsyncClient, staff_headers):
    body = {**EVENT_BODY, "recurrence": {"frequency": "weekly", "weekdays": [1, 3], "count": 4}}

    response = await client.post("/api/v1/events", json=body, headers=staff_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["recurring_group_id"].startswith("grp_")
    assert [e["date"] for e in data["events"]] == ["2030-03-05", "2030-03-07", "2030-03-12", "2030-03-14"]
    assert {e["recurring_group_id"] for e in data["events"]} == {data["recurring_group_id"]}


@pytest.mark.asyncio
async def test_participant_cannot_create_event(client: AsyncClient, alice_headers):
    response = await client.post("/api/v1/events", json=EVENT_BODY, headers=alice_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_end_before_start_is_rejected(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/events", json={**EVENT_BODY, "end_time": "14:00"},
                                 headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "ValidationError"


@pytest.mark.asyncio
async def test_update_keeps_counters(client: AsyncClient, staff_headers, repository):
    await repository.add_events([make_event(current_signups=4, current_volunteers=1)])

    response = await client.put(
        "/api/v1/events/evt_1",
        json={**EVENT_BODY, "title": "Art Jamming (moved)", "capacity": 20},
        headers=staff_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Art Jamming (moved)"
    assert data["capacity"] == 20
    assert data["current_signups"] == 4
    assert data["current_volunteers"] == 1


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, staff_headers, test_event):
    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=staff_headers)
    assert response.status_code == 204

    assert (await client.get(f"/api/v1/events/{test_event.id}")).status_code == 404


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "admission_latency_seconds" in metrics.text
