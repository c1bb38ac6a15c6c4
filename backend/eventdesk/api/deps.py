"""
FastAPI dependencies: engine services, identity gating and rate limiting.
"""

from fastapi import Depends, Request

from eventdesk.core.exceptions import PermissionDenied
from eventdesk.core.security import Identity, get_current_identity
from eventdesk.domain.enums import UserStatus
from eventdesk.domain.records import User
from eventdesk.services.container import Services
from eventdesk.services.rate_limit import client_ip_from


def get_services(request: Request) -> Services:
    return request.app.state.services


async def enforce_rate_limit(request: Request, services: Services = Depends(get_services)) -> None:
    client_ip = client_ip_from(request.headers, request.client.host if request.client else None)
    decision = await services.rate_limiter.enforce(client_ip, request.method, request.url.path)
    request.state.rate_limit = decision


async def get_active_user(
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
) -> User:
    """Signed-in account that staff have approved. Staff accounts pass whatever their status."""
    user = await services.repository.find_user(identity.user_id)
    if identity.is_admin() and user is not None:
        return user
    if user is None:
        raise PermissionDenied(
            "Please sign in with a registered account to sign up for events",
            details={"user_id": identity.user_id},
        )
    if not user.is_active:
        raise PermissionDenied(
            "Your account is awaiting approval" if user.status == UserStatus.PENDING
            else "Your account is restricted",
            details={"status": user.status.value},
        )
    return user
