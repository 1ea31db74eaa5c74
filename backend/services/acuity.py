"""Acuity Scheduling API client — authenticated access to appointment availability.

Every call is a plain GET with HTTP Basic auth (user id + API key). Responses
are returned as parsed JSON without reshaping; normalization lives in
services/availability.py.
"""

import json
import logging
from typing import Any

import httpx

from errors import ConfigMissingError, UpstreamError

logger = logging.getLogger(__name__)

USER_AGENT = "Mentra/availability 1.0"


def _parse_body(text: str) -> Any:
    """Parse JSON leniently: empty or non-JSON bodies become None."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def _error_message(status: int, parsed: Any, text: str) -> str:
    if isinstance(parsed, dict):
        for field in ("message", "error"):
            if parsed.get(field):
                return str(parsed[field])
    return text or f"HTTP {status}"


class AcuityClient:
    def __init__(
        self,
        base_url: str,
        user_id: str | None,
        api_key: str | None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.user_id and self.api_key)

    def _require_credentials(self) -> tuple[str, str]:
        missing = []
        if not self.user_id:
            missing.append("ACUITY_USER_ID")
        if not self.api_key:
            missing.append("ACUITY_API_KEY")
        if missing:
            raise ConfigMissingError(missing)
        return self.user_id, self.api_key

    async def get(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET ``path`` from the provider and return the parsed JSON body.

        Raises:
            ConfigMissingError: credentials are not configured (no request is made).
            UpstreamError: non-2xx status, or the request never got an answer.
        """
        auth = self._require_credentials()
        url = f"{self.base_url}{path}"
        headers = {
            "Accept": "application/json",
            "Cache-Control": "no-store",
            "User-Agent": USER_AGENT,
        }
        client_kwargs: dict[str, Any] = {"auth": auth, "headers": headers, "transport": self._transport}
        if self.timeout:
            client_kwargs["timeout"] = self.timeout

        logger.info("Acuity GET %s %s", path, params or {})
        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                resp = await client.get(url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Acuity request failed for %s: %s", path, e)
            raise UpstreamError(str(e) or "Upstream request failed") from e

        text = resp.text
        parsed = _parse_body(text)

        if not resp.is_success:
            message = _error_message(resp.status_code, parsed, text)
            logger.warning("Acuity %s returned HTTP %d: %s", path, resp.status_code, message)
            raise UpstreamError(
                message,
                upstream_status=resp.status_code,
                body=parsed if parsed is not None else text,
            )

        return parsed

    async def available_times(self, appointment_type_id: str, date: str, timezone: str) -> Any:
        return await self.get(
            "/availability/times",
            {"appointmentTypeID": appointment_type_id, "date": date, "timezone": timezone},
        )

    async def available_dates(self, appointment_type_id: str, month: str, timezone: str) -> Any:
        return await self.get(
            "/availability/dates",
            {"appointmentTypeID": appointment_type_id, "month": month, "timezone": timezone},
        )
