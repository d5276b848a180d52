"""
Central error handling for the Leave Workflow Backend
"""
import logging
import traceback

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

from app.core.config import settings
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)


def _error_body(request: Request, status_code: int, detail, **extra) -> dict:
    body = {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "path": str(request.url.path),
    }
    body.update(extra)
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Render domain exceptions raised by the service layer

    NotFound, Unauthorized, InvalidState, PrecedenceViolation, InsufficientBalance,
    DuplicateCarryForward and concurrency conflicts all land here with their own
    status code and error_code.
    """
    if exc.status_code >= 500:
        logger.error("Service error on %s: %s", request.url.path, exc.message)
    else:
        logger.info("Rejected %s %s: %s (%s)", request.method, request.url.path, exc.message, exc.error_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            request,
            exc.status_code,
            exc.message,
            error_code=exc.error_code,
            details=exc.details,
        ),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(request, 422, "Validation error: Invalid request data"),
        )

    # ctx may hold exception instances (e.g. ValueError) which are not JSON serializable
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, 422, "Validation error", errors=errors),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, 500, "Internal server error"),
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            500,
            str(exc),
            traceback=traceback.format_exc() if settings.APP_ENV == "local" else None,
        ),
    )
