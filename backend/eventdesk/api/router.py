"""
Central API router that aggregates all route modules.
Every /api/v1 route passes the per-client rate limiter first.
"""

from fastapi import APIRouter, Depends

from eventdesk.api.deps import enforce_rate_limit
from eventdesk.api.routes import events, registrations, users, waitlist

api_router = APIRouter(prefix="/api/v1", dependencies=[Depends(enforce_rate_limit)])
api_router.include_router(events.router)
api_router.include_router(registrations.router)
api_router.include_router(waitlist.router)
api_router.include_router(users.router)
