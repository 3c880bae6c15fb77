"""Exception handlers producing stable error envelopes.

Every failure body has ``success: false`` and an ``error`` message.
Internal detail is only attached in development.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from credit_engine.errors import IneligibleReferrerError, LedgerValidationError, StoreError
from credit_engine.logging_config import get_logger
from credit_engine.settings import Settings

logger = get_logger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /api",
    "POST /api/enroll",
    "POST /api/credits",
    "GET /api/credits/{userId}",
]


def error_response(
    status_code: int,
    message: str,
    code: str | None = None,
    details: Any = None,
    **extra: Any,
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": message}
    if code:
        content["code"] = code
    if details is not None:
        content["details"] = details
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def install_error_handlers(app: FastAPI, config: Settings) -> None:
    """Register the handlers for every error kind the engine raises.

    Internal detail follows ``config``, not the process-wide settings.
    """

    def _debug_details(exc: Exception) -> str | None:
        return str(exc) if config.is_development else None

    @app.exception_handler(LedgerValidationError)
    async def validation_error_handler(request: Request, exc: LedgerValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, exc.message, code=exc.code)

    @app.exception_handler(IneligibleReferrerError)
    async def ineligible_referrer_handler(request: Request, exc: IneligibleReferrerError):
        return error_response(status.HTTP_400_BAD_REQUEST, exc.message, code=exc.code)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("store_error", path=request.url.path, error=exc.message)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            details=_debug_details(exc),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            code="invalid_request",
            details=[error.get("msg") for error in exc.errors()],
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Too many requests from this IP, please try again later.",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unmatched routes carry Starlette's default detail; handlers set their own
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            return error_response(
                exc.status_code,
                "Endpoint not found",
                path=request.url.path,
                availableEndpoints=AVAILABLE_ENDPOINTS,
            )
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            details=_debug_details(exc),
        )
