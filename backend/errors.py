"""Custom exceptions and centralized FastAPI error handlers.

Every error leaves the API in the same envelope:

    {"success": false, "error": {"message": "...", ...}}
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

NO_STORE = "no-store"


class AvailabilityError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_error(self) -> dict[str, Any]:
        return {"message": self.message}

    def headers(self) -> dict[str, str]:
        return {}


class QueryValidationError(AvailabilityError):
    def __init__(self, issues: list[dict[str, str]], message: str = "Invalid query"):
        super().__init__(message, status_code=400)
        self.issues = issues

    def to_error(self) -> dict[str, Any]:
        return {"message": self.message, "issues": self.issues}


class ConfigMissingError(AvailabilityError):
    code = "CONFIG_MISSING"

    def __init__(self, missing: list[str]):
        super().__init__(f"Missing {'/'.join(missing)}", status_code=500)
        self.missing = missing

    def to_error(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code}


class UpstreamError(AvailabilityError):
    """Non-success answer (or no answer at all) from the scheduling provider."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, upstream_status: int | None = None, body: Any = None):
        super().__init__(message, status_code=502)
        self.upstream_status = upstream_status
        self.body = body

    def to_error(self) -> dict[str, Any]:
        error: dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "upstreamStatus": self.upstream_status,
        }
        if self.body is not None:
            error["details"] = self.body
        return error


class RateLimitExceeded(AvailabilityError):
    def __init__(self, retry_after: int, limit: int):
        super().__init__(f"Rate limit exceeded. Maximum {limit} requests per window.", status_code=429)
        self.retry_after = retry_after
        self.limit = limit

    def to_error(self) -> dict[str, Any]:
        return {"message": self.message, "retryAfter": self.retry_after}

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


def error_response(status_code: int, error: dict[str, Any], headers: dict[str, str] | None = None) -> JSONResponse:
    response = JSONResponse({"success": False, "error": error}, status_code=status_code, headers=headers)
    response.headers["Cache-Control"] = NO_STORE
    return response


def issues_from(errors: list[dict]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into field/message pairs."""
    issues = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("query", "body", "path")]
        issues.append({"field": ".".join(loc) or "request", "message": err.get("msg", "Invalid value")})
    return issues


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(AvailabilityError)
    async def handle_availability_error(_request: Request, exc: AvailabilityError):
        return error_response(exc.status_code, exc.to_error(), headers=exc.headers())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_request: Request, exc: RequestValidationError):
        return error_response(400, {"message": "Invalid request", "issues": issues_from(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(exc.status_code, {"message": message}, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return error_response(500, {"message": "Internal server error"})
