"""Main FastAPI application for the Credit Engine API."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from credit_engine import __version__
from credit_engine.api.errors import install_error_handlers
from credit_engine.api.rate_limit import limiter
from credit_engine.api.v1.admin import router as admin_router
from credit_engine.api.v1.credits import router as credits_router
from credit_engine.api.v1.enroll import router as enroll_router
from credit_engine.engine import CreditEngine, build_engine
from credit_engine.ledger.schemas import REFERRAL_BONUS
from credit_engine.logging_config import bind_request_context, configure_logging, get_logger
from credit_engine.settings import Settings, settings as default_settings
from credit_engine.storage.seed import seed_demo_events

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses.

    The API only serves JSON, so the policy forbids any active content.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request with method, path, status and duration."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        bind_request_context(request_id=request_id, method=request.method, path=request.url.path)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        response.headers["X-Request-ID"] = request_id
        logger.info("request_handled", status=response.status_code, duration_ms=duration_ms)
        return response


def _allowed_origins(config: Settings) -> list[str]:
    origins = [origin.strip() for origin in config.allowed_origins.split(",") if origin.strip()]

    # Block wildcard in production
    if config.env == "production" and "*" in origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        return []
    return origins


def create_app(engine: CreditEngine | None = None, config: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        engine: Prebuilt engine (tests); built from settings at startup otherwise
        config: Settings override

    Returns:
        Configured FastAPI app
    """
    config = config or default_settings
    is_production = config.env == "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_starting", env=config.env, storage=config.storage_backend)
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine(config)
        if config.seed_demo_data:
            seed_demo_events(app.state.engine.store)

        yield

        logger.info("app_shutting_down")

    app = FastAPI(
        title="Credit Engine API",
        description="Issues and tracks thank-you credits, with referral bonuses",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )
    app.state.engine = engine

    install_error_handlers(app, config)

    # Middleware added last runs first
    limiter.enabled = is_production
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(config),
        allow_credentials=not is_production,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Request-ID"],
        max_age=3600,
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(enroll_router, prefix="/api")
    app.include_router(credits_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    @app.get("/health")
    @limiter.exempt
    async def health_check(request: Request):
        """Health check endpoint."""
        store = request.app.state.engine.store
        healthy = store.ping()
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": healthy,
                "service": config.app_name,
                "status": "healthy" if healthy else "degraded",
                "storage": store.name,
                "version": __version__,
                "env": config.env,
            },
        )

    @app.get("/api")
    async def api_info(request: Request):
        """API information."""
        ledger = request.app.state.engine.ledger
        return {
            "success": True,
            "service": "Credit Engine API",
            "version": __version__,
            "endpoints": {
                "enrollment": {
                    "POST /api/enroll": "Enroll user and award credits with optional referral bonus",
                    "POST /api/enroll/batch": "Batch enrollment for multiple users",
                },
                "credits": {
                    "POST /api/credits": "Award credits for various actions",
                    "GET /api/credits/events": "Filtered, paginated credit events",
                    "GET /api/credits/events/{eventId}/bonus": "Referral bonus linked to an event",
                    "GET /api/credits/{userId}": "Get user credit totals and summary",
                    "GET /api/credits/{userId}/events": "Get paginated credit events for user",
                    "GET /api/credits/{userId}/referrals": "Get referral bonus summary for user",
                    "GET /api/credits/system/stats": "Get system-wide statistics",
                },
                "admin": {
                    "POST /api/admin/reconcile": "Award referral bonuses missed by failed writes",
                },
            },
            "actionTypes": [*ledger.action_types, REFERRAL_BONUS],
        }

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Credit Engine API",
            "version": __version__,
            "docs": None if is_production else "/api/docs",
        }

    return app


def create_default_app() -> FastAPI:
    """Entry point for ``uvicorn --factory``; configures logging first."""
    configure_logging()
    return create_app()
