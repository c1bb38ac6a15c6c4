"""
Waitlist endpoints. Requests come from participants; everything else is staff only.
"""

from fastapi import APIRouter, Depends, status

from eventdesk.api.deps import get_active_user, get_services
from eventdesk.core.security import Identity, get_current_identity, require_admin
from eventdesk.domain.records import User
from eventdesk.schemas.registration import (
    PromoteRequest,
    RegistrationCreate,
    RegistrationResponse,
    WaitlistResponse,
)
from eventdesk.services.container import Services

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


@router.post("/requests", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def request_waitlist(
    registration_data: RegistrationCreate,
    identity: Identity = Depends(get_current_identity),
    user: User = Depends(get_active_user),
    services: Services = Depends(get_services),
):
    """Ask to join the waitlist of a full event. Staff approve or reject the request."""
    if not identity.is_admin() or not registration_data.user_id:
        registration_data = registration_data.model_copy(update={"user_id": user.id})
    registration = await services.waitlist.request(registration_data)
    return RegistrationResponse.model_validate(registration)


@router.post("/promote", response_model=RegistrationResponse)
async def promote(
    promote_data: PromoteRequest,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Confirm an approved entry; the lowest position when no registration_id is given."""
    registration = await services.waitlist.promote(promote_data.event_id, promote_data.registration_id)
    return RegistrationResponse.model_validate(registration)


@router.post("/{registration_id}/approve", response_model=RegistrationResponse)
async def approve(
    registration_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return RegistrationResponse.model_validate(await services.waitlist.approve(registration_id))


@router.post("/{registration_id}/reject", response_model=RegistrationResponse)
async def reject(
    registration_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return RegistrationResponse.model_validate(await services.waitlist.reject(registration_id))


@router.get("/{event_id}", response_model=WaitlistResponse)
async def waitlist_view(
    event_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Approved entries by position, then pending requests oldest first."""
    view = await services.waitlist.view(event_id)
    return WaitlistResponse(
        event_id=view.event_id,
        approved=[RegistrationResponse.model_validate(r) for r in view.approved],
        pending=[RegistrationResponse.model_validate(r) for r in view.pending],
    )
