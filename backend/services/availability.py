"""Availability lookups: normalize provider payloads and cache the results.

The provider is inconsistent about shapes. Times arrive as plain strings or as
``{"time": ...}`` / ``{"datetime": ...}`` objects, often with a compact offset
(``-0500``). Dates arrive as a list of strings, a list of ``{"date": ...}``
objects, or wrapped as ``{"dates": [...]}``.
"""

import asyncio
import logging
import re
from datetime import date
from enum import Enum
from typing import Any

from errors import AvailabilityError
from services.acuity import AcuityClient
from services.cache import TTLCache

logger = logging.getLogger(__name__)

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def normalize_offset(value: str) -> str:
    """``2025-03-01T09:00:00-0500`` -> ``2025-03-01T09:00:00-05:00``."""
    return _COMPACT_OFFSET.sub(r"\1:\2", value)


def normalize_times(payload: Any) -> list[str]:
    if not isinstance(payload, list):
        return []
    times = []
    for slot in payload:
        if isinstance(slot, dict):
            slot = slot.get("time") or slot.get("datetime")
        if slot:
            times.append(normalize_offset(str(slot)))
    return times


class DatesShape(str, Enum):
    PLAIN_LIST = "plain_list"
    OBJECT_LIST = "object_list"
    WRAPPED = "wrapped"
    EMPTY = "empty"


def classify_dates(payload: Any) -> DatesShape:
    if isinstance(payload, list):
        if any(isinstance(item, dict) for item in payload):
            return DatesShape.OBJECT_LIST
        return DatesShape.PLAIN_LIST
    if isinstance(payload, dict) and isinstance(payload.get("dates"), list):
        return DatesShape.WRAPPED
    return DatesShape.EMPTY


def _dates_from_plain_list(payload: list) -> list[str]:
    return [str(item) for item in payload if item]


def _dates_from_object_list(payload: list) -> list[str]:
    # Mixed lists happen; bare strings pass through.
    dates = [item.get("date") if isinstance(item, dict) else item for item in payload]
    return [str(d) for d in dates if d]


def _dates_from_wrapped(payload: dict) -> list[str]:
    return _dates_from_plain_list(payload["dates"])


_DATE_NORMALIZERS = {
    DatesShape.PLAIN_LIST: _dates_from_plain_list,
    DatesShape.OBJECT_LIST: _dates_from_object_list,
    DatesShape.WRAPPED: _dates_from_wrapped,
    DatesShape.EMPTY: lambda _payload: [],
}


def normalize_dates(payload: Any) -> list[str]:
    return _DATE_NORMALIZERS[classify_dates(payload)](payload)


def months_between(start: date, end: date) -> list[str]:
    """``YYYY-MM`` keys for every month touched by ``[start, end]``."""
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append(f"{year:04d}-{month:02d}")
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


class AvailabilityService:
    """Cache-first availability lookups against the scheduling provider."""

    def __init__(self, client: AcuityClient, cache: TTLCache):
        self.client = client
        self.cache = cache

    async def day(self, appointment_type_id: str, timezone: str, day: str) -> tuple[list[str], bool]:
        key = f"day:{appointment_type_id}:{timezone}:{day}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        payload = await self.client.available_times(appointment_type_id, day, timezone)
        times = normalize_times(payload)
        self.cache.set(key, times)
        return times, False

    async def month(self, appointment_type_id: str, timezone: str, month: str) -> tuple[list[str], bool]:
        key = f"month:{appointment_type_id}:{timezone}:{month}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        payload = await self.client.available_dates(appointment_type_id, month, timezone)
        dates = normalize_dates(payload)
        self.cache.set(key, dates)
        return dates, False

    async def range(
        self, appointment_type_id: str, timezone: str, start: date, end: date
    ) -> tuple[dict, bool]:
        """Dates in ``[start, end]`` plus the times offered on each of them."""
        key = f"range:{appointment_type_id}:{timezone}:{start.isoformat()}:{end.isoformat()}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        month_results = await asyncio.gather(
            *[self.month(appointment_type_id, timezone, m) for m in months_between(start, end)]
        )
        lo, hi = start.isoformat(), end.isoformat()
        wanted = sorted({d for dates, _ in month_results for d in dates if lo <= d <= hi})

        failed: list[str] = []

        async def _times_for(day: str) -> list[str]:
            try:
                times, _ = await self.day(appointment_type_id, timezone, day)
            except AvailabilityError as e:
                logger.warning("Times lookup failed for %s, returning none: %s", day, e)
                failed.append(day)
                return []
            return times

        day_times = await asyncio.gather(*[_times_for(d) for d in wanted])
        result = {"dates": wanted, "times": dict(zip(wanted, day_times))}
        if not failed:
            self.cache.set(key, result)
        return result, False

