"""Health and readiness check routes."""

import logging

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def ready(request: Request) -> dict:
    """Lightweight readiness check — no external calls."""
    return {"status": "ok", "service": "availability-api", "commit": request.app.state.settings.git_sha}


@router.get("/health")
async def health(request: Request) -> dict:
    """Configuration and cache report. Never echoes credential values."""
    state = request.app.state
    missing = state.settings.validate()

    result = {
        "status": "degraded" if missing else "ok",
        "service": "availability-api",
        "commit": state.settings.git_sha,
        "upstream": {
            "base_url": state.acuity.base_url,
            "configured": state.acuity.configured,
            "missing": missing,
        },
        "cache": {**state.cache.stats(), "sweeping": state.cache.sweeping},
        "rate_limit": {
            "enabled": state.settings.rate_limit_enabled,
            "tracked_clients": len(state.rate_limiter),
        },
    }
    if missing:
        logger.warning("Health check degraded, missing env vars: %s", ", ".join(missing))
    return result
