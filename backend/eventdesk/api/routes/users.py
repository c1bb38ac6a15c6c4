"""
User endpoints: first sign-in, own profile and quota, staff administration.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from eventdesk.api.deps import get_services
from eventdesk.core.security import Identity, get_current_identity, require_admin
from eventdesk.domain.enums import UserStatus
from eventdesk.schemas.user import (
    QuotaResponse,
    SignInResponse,
    UserResponse,
    UserSignIn,
    UserUpdate,
)
from eventdesk.services.container import Services

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=SignInResponse)
async def sign_in(
    sign_in_data: UserSignIn,
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
):
    """Record the account on first sign-in. New accounts wait for staff approval."""
    user, created = await services.users.sign_in(identity.user_id, sign_in_data)
    return SignInResponse(user=UserResponse.model_validate(user), created=created)


@router.get("/me", response_model=UserResponse)
async def get_me(
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
):
    return UserResponse.model_validate(await services.users.get_user(identity.user_id))


@router.get("/me/quota", response_model=QuotaResponse)
async def get_my_quota(
    on_date: Optional[date] = Query(None, alias="date"),
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
):
    """Participant registrations used in the week containing `date` (default today)."""
    on_date = on_date or date.today()
    user = await services.users.get_user(identity.user_id)
    usage = await services.users.quota_usage(user.id, on_date)
    return QuotaResponse(
        membership_type=user.membership_type,
        week_start=usage.week.start,
        week_end=usage.week.end,
        count=usage.count,
        limit=usage.limit,
        remaining=usage.remaining,
    )


@router.get("", response_model=list[UserResponse])
async def list_users(
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    users = await services.users.list_users(user_status)
    return [UserResponse.model_validate(u) for u in users]


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    update: UserUpdate,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Approve or restrict an account, or change its role or membership."""
    return UserResponse.model_validate(await services.users.update_user(user_id, update, admin.user_id))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    await services.users.delete_user(user_id, admin.user_id)
