"""
Registration endpoints: admission, status changes and staff removal.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from eventdesk.api.deps import get_active_user, get_services
from eventdesk.core.exceptions import PermissionDenied
from eventdesk.core.security import Identity, get_current_identity, require_admin
from eventdesk.domain.records import User
from eventdesk.schemas.registration import (
    RegistrationCreate,
    RegistrationResponse,
    RemovalRequest,
    RemovalResponse,
    StatusUpdate,
)
from eventdesk.services.container import Services

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.get("", response_model=list[RegistrationResponse])
async def list_registrations(
    user_id: Optional[str] = Query(None),
    event_id: Optional[str] = Query(None),
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
):
    """List registrations. Participants only ever see their own."""
    if not identity.is_admin():
        if user_id is not None and user_id != identity.user_id:
            raise PermissionDenied("You can only view your own registrations")
        user_id = identity.user_id
    registrations = await services.repository.list_registrations(user_id=user_id, event_id=event_id)
    return [RegistrationResponse.model_validate(r) for r in registrations]


@router.get("/history", response_model=list[RemovalResponse])
async def removal_history(
    event_id: Optional[str] = Query(None),
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Archived removals, newest last."""
    records = await services.status.removal_history(event_id)
    return [RemovalResponse.model_validate(r) for r in records]


@router.post("", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration_data: RegistrationCreate,
    identity: Identity = Depends(get_current_identity),
    user: User = Depends(get_active_user),
    services: Services = Depends(get_services),
):
    """
    Register for an event as a participant or volunteer.

    Checks run in order: duplicate, capacity, time conflict, weekly quota.
    The confirmation SMS/email is sent in the background.
    """
    if not identity.is_admin() or not registration_data.user_id:
        registration_data = registration_data.model_copy(update={"user_id": user.id})
    registration = await services.admission.admit(registration_data)
    return RegistrationResponse.model_validate(registration)


@router.patch("/{registration_id}", response_model=RegistrationResponse)
async def update_registration_status(
    registration_id: str,
    update: StatusUpdate,
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
):
    """Change a registration's status (cancel, reinstate, mark attended/absent)."""
    registration = await services.status.change_status(registration_id, update.status, identity)
    return RegistrationResponse.model_validate(registration)


@router.delete("/{registration_id}", response_model=RemovalResponse)
async def remove_registration(
    registration_id: str,
    removal: Optional[RemovalRequest] = None,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Remove a registration, keeping a copy in the removal history."""
    reason = removal.reason if removal is not None else ""
    record = await services.status.remove(registration_id, admin, reason)
    return RemovalResponse.model_validate(record)
