"""FastAPI application entry point for the availability API."""

import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, settings as default_settings
from errors import register_error_handlers
from services.acuity import AcuityClient
from services.availability import AvailabilityService
from services.cache import TTLCache
from services.rate_limit import FixedWindowRateLimiter

# Structured logging: JSON for production, human-readable for local
if default_settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# Keep request lines out of INFO; the client logs its own upstream calls.
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or default_settings

    cache = TTLCache(
        default_ttl=settings.cache_ttl_seconds,
        sweep_interval=settings.cache_sweep_interval,
    )
    acuity = AcuityClient(
        base_url=settings.acuity_base_url,
        user_id=settings.acuity_user_id,
        api_key=settings.acuity_api_key,
        timeout=settings.acuity_timeout,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        missing = settings.validate()
        if missing:
            logger.warning("Missing env vars (availability lookups will fail): %s", ", ".join(missing))
        await cache.start()
        yield
        await cache.stop()

    app = FastAPI(title="Mentra Availability API", version="1.0.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.cache = cache
    app.state.acuity = acuity
    app.state.rate_limiter = FixedWindowRateLimiter()
    app.state.availability = AvailabilityService(acuity, cache)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from routes.availability import router as availability_router
    from routes.health import router as health_router

    app.include_router(health_router)
    app.include_router(availability_router)

    return app


app = create_app()
