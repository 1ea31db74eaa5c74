"""Availability routes — read-only proxies to the scheduling provider.

GET /availability/day    → times offered on one date
GET /availability/month  → dates with any opening in a month
GET /availability/range  → dates in [startDate, endDate] plus their times

All three answer with ``{success, data, cached, timestamp}`` and are never
cacheable by clients or intermediaries.
"""

import logging
from datetime import date, datetime, timezone as dt_timezone

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from errors import NO_STORE, AvailabilityError, ConfigMissingError, QueryValidationError, UpstreamError, issues_from
from services.availability import AvailabilityService
from services.rate_limit import RateLimitResult, enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability")

MAX_RANGE_DAYS = 62


# ---------------------------------------------------------------------------
# Query schemas
# ---------------------------------------------------------------------------

class _AvailabilityQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    appointment_type_id: str = Field(alias="appointmentTypeId", pattern=r"^[0-9]+$")
    timezone: str = Field(min_length=1)


class DayQuery(_AvailabilityQuery):
    date: str = Field(pattern=r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

    @field_validator("date")
    @classmethod
    def check_real_date(cls, value: str) -> str:
        date.fromisoformat(value)
        return value


class MonthQuery(_AvailabilityQuery):
    month: str = Field(pattern=r"^[0-9]{4}-(0[1-9]|1[0-2])$")


class RangeQuery(_AvailabilityQuery):
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")

    @model_validator(mode="after")
    def check_span(self) -> "RangeQuery":
        span = (self.end_date - self.start_date).days
        if span < 0:
            raise ValueError("endDate must not be before startDate")
        if span > MAX_RANGE_DAYS:
            raise ValueError(f"range may span at most {MAX_RANGE_DAYS} days")
        return self


def _parse_query(model: type[BaseModel], request: Request):
    try:
        return model.model_validate(dict(request.query_params))
    except ValidationError as e:
        raise QueryValidationError(issues_from(e.errors())) from e


def day_query(request: Request) -> DayQuery:
    return _parse_query(DayQuery, request)


def month_query(request: Request) -> MonthQuery:
    return _parse_query(MonthQuery, request)


def range_query(request: Request) -> RangeQuery:
    return _parse_query(RangeQuery, request)


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _envelope(data, cached: bool) -> dict:
    return {
        "success": True,
        "data": data,
        "cached": cached,
        "timestamp": datetime.now(dt_timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def _prepare(response: Response, limit: RateLimitResult | None) -> None:
    response.headers["Cache-Control"] = NO_STORE
    if limit is not None:
        response.headers["X-RateLimit-Limit"] = str(limit.limit)
        response.headers["X-RateLimit-Remaining"] = str(limit.remaining)


def _as_gateway_error(exc: AvailabilityError, fallback: str) -> AvailabilityError:
    """Upstream failures surface as 502; missing configuration stays a 500."""
    if isinstance(exc, (ConfigMissingError, UpstreamError)):
        if not exc.message:
            exc.message = fallback
        return exc
    return UpstreamError(exc.message or fallback)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/day")
async def day_availability(
    response: Response,
    query: DayQuery = Depends(day_query),
    limit: RateLimitResult | None = Depends(enforce_rate_limit),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    """Bookable start times for one date, offsets in ``+HH:MM`` form."""
    _prepare(response, limit)
    try:
        times, cached = await service.day(query.appointment_type_id, query.timezone, query.date)
    except AvailabilityError as e:
        logger.error("Day availability failed for %s: %s", query.date, e)
        raise _as_gateway_error(e, "Failed to fetch day availability") from e
    return _envelope(times, cached)


@router.get("/month")
async def month_availability(
    response: Response,
    query: MonthQuery = Depends(month_query),
    limit: RateLimitResult | None = Depends(enforce_rate_limit),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    """Dates in a month with at least one opening."""
    _prepare(response, limit)
    try:
        dates, cached = await service.month(query.appointment_type_id, query.timezone, query.month)
    except AvailabilityError as e:
        logger.error("Month availability failed for %s: %s", query.month, e)
        raise _as_gateway_error(e, "Failed to load month availability") from e
    return _envelope(dates, cached)


@router.get("/range")
async def range_availability(
    response: Response,
    query: RangeQuery = Depends(range_query),
    limit: RateLimitResult | None = Depends(enforce_rate_limit),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    _prepare(response, limit)
    try:
        data, cached = await service.range(
            query.appointment_type_id, query.timezone, query.start_date, query.end_date
        )
    except AvailabilityError as e:
        logger.error("Range availability failed for %s..%s: %s", query.start_date, query.end_date, e)
        raise _as_gateway_error(e, "Failed to load range availability") from e
    return _envelope(data, cached)
