"""
Exception handlers rendering every engine error as
{"error": {"kind", "message", "details"}}.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventdesk.core.exceptions import (
    BusinessRuleViolation,
    EventDeskError,
    RateLimited,
    UpstreamFailure,
)
from eventdesk.core.logging import get_logger

logger = get_logger(__name__)


def error_response(error: EventDeskError) -> JSONResponse:
    headers = None
    if isinstance(error, RateLimited):
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()}, headers=headers)


async def handle_engine_error(request: Request, exc: EventDeskError) -> JSONResponse:
    if isinstance(exc, UpstreamFailure):
        cause = exc.cause
        logger.error(
            "upstream_failure",
            error=str(cause) if cause else exc.message,
            error_type=type(cause).__name__ if cause else None,
        )
    elif isinstance(exc, BusinessRuleViolation):
        logger.info("business_rule_rejected", kind=exc.kind, details=exc.details)
    elif exc.status_code >= 500:
        logger.error("request_error", kind=exc.kind, message=exc.message)
    return error_response(exc)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for error in exc.errors():
        fields.append({
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {"kind": "ValidationError", "message": "Invalid request", "details": {"errors": fields}}},
    )


HTTP_KINDS = {
    401: "Unauthorized",
    403: "PermissionDenied",
    404: "NotFound",
    405: "MethodNotAllowed",
}


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Identity and routing errors raised as HTTPException, in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {
            "kind": HTTP_KINDS.get(exc.status_code, "HTTPError"),
            "message": str(exc.detail),
            "details": {},
        }},
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EventDeskError, handle_engine_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
