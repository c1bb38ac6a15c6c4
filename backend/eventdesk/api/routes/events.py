"""
Event endpoints. Reads are public; writes are staff only.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from eventdesk.api.deps import get_services
from eventdesk.core.security import Identity, require_admin
from eventdesk.schemas.event import (
    EventBatchResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
)
from eventdesk.services.container import Services

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    category: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    """List events ordered by date, optionally within a date range or category."""
    events, total = await services.events.list_events(page, page_size, date_from, date_to, category)
    return EventListResponse(
        events=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: str, services: Services = Depends(get_services)):
    """Get a single event with live counters."""
    return EventResponse.model_validate(await services.events.get_event(event_id))


@router.post("", response_model=EventBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """
    Create an event. With `recurrence` set, one event is created per occurrence
    and all of them share a recurring_group_id.
    """
    events = await services.events.create_events(event_data)
    return EventBatchResponse(
        recurring_group_id=events[0].recurring_group_id,
        events=[EventResponse.model_validate(e) for e in events],
    )


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: str,
    event_data: EventUpdate,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Replace the editable fields. Signup, volunteer and waitlist counters are kept."""
    return EventResponse.model_validate(await services.events.update_event(event_id, event_data))


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    await services.events.delete_event(event_id)
