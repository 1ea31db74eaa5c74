"""
Route tests for the availability and health endpoints.
"""

import httpx
from fastapi.testclient import TestClient

from app import create_app
from config import Settings

DAY_URL = "/availability/day?appointmentTypeId=123&timezone=America/New_York&date=2025-03-01"
MONTH_URL = "/availability/month?appointmentTypeId=123&timezone=America/New_York&month=2025-03"


class TestDayAvailability:
    def test_normalizes_offsets(self, client, fake_acuity):
        fake_acuity.reply("/availability/times", [{"time": "2025-03-01T09:00:00-0500"}])

        response = client.get(DAY_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == ["2025-03-01T09:00:00-05:00"]
        assert body["cached"] is False
        assert body["timestamp"].endswith("Z")
        assert response.headers["cache-control"] == "no-store"

        params = fake_acuity.requests[0].url.params
        assert params["appointmentTypeID"] == "123"
        assert params["timezone"] == "America/New_York"

    def test_second_call_served_from_cache(self, client, fake_acuity):
        fake_acuity.reply("/availability/times", [{"time": "2025-03-01T09:00:00-0500"}])

        client.get(DAY_URL)
        response = client.get(DAY_URL)

        assert response.json()["cached"] is True
        assert len(fake_acuity.requests) == 1

    def test_missing_date_is_invalid_query(self, client, fake_acuity):
        response = client.get("/availability/day?appointmentTypeId=123&timezone=America/New_York")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["message"] == "Invalid query"
        assert [issue["field"] for issue in body["error"]["issues"]] == ["date"]
        assert response.headers["cache-control"] == "no-store"
        assert fake_acuity.requests == []

    def test_rejects_bad_fields(self, client):
        response = client.get("/availability/day?appointmentTypeId=abc&timezone=&date=2025-02-30")

        assert response.status_code == 400
        fields = {issue["field"] for issue in response.json()["error"]["issues"]}
        assert fields == {"appointmentTypeId", "timezone", "date"}

    def test_upstream_error_is_502(self, client, fake_acuity):
        fake_acuity.reply("/availability/times", {"message": "Appointment type not found"}, status=404)

        response = client.get(DAY_URL)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["message"] == "Appointment type not found"
        assert error["code"] == "UPSTREAM_ERROR"
        assert error["upstreamStatus"] == 404

    def test_invalid_upstream_url_is_502(self, client, fake_acuity):
        fake_acuity.fail_with = httpx.InvalidURL("bad url")

        response = client.get(DAY_URL)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["message"] == "bad url"
        assert error["code"] == "UPSTREAM_ERROR"

    def test_non_ascii_digits_rejected(self, client, fake_acuity):
        response = client.get(
            "/availability/day?appointmentTypeId=١٢٣&timezone=UTC&date=2025-03-01"
        )

        assert response.status_code == 400
        assert [issue["field"] for issue in response.json()["error"]["issues"]] == ["appointmentTypeId"]
        assert fake_acuity.requests == []

    def test_post_not_allowed(self, client):
        response = client.post(DAY_URL)

        assert response.status_code == 405
        assert response.json()["success"] is False
        assert response.headers["cache-control"] == "no-store"


class TestMonthAvailability:
    def test_wrapped_dates(self, client, fake_acuity):
        fake_acuity.reply("/availability/dates", {"dates": ["2025-03-03", "", "2025-03-04"]})

        response = client.get(MONTH_URL)

        assert response.status_code == 200
        assert response.json()["data"] == ["2025-03-03", "2025-03-04"]
        assert response.headers["cache-control"] == "no-store"

    def test_object_dates(self, client, fake_acuity):
        fake_acuity.reply("/availability/dates", [{"date": "2025-03-03"}])

        assert client.get(MONTH_URL).json()["data"] == ["2025-03-03"]

    def test_invalid_month(self, client):
        response = client.get("/availability/month?appointmentTypeId=123&timezone=UTC&month=2025-13")

        assert response.status_code == 400
        assert response.json()["error"]["issues"][0]["field"] == "month"

    def test_put_not_allowed(self, client):
        assert client.put(MONTH_URL).status_code == 405


class TestRangeAvailability:
    def test_dates_and_times(self, client, fake_acuity):
        fake_acuity.reply("/availability/dates", ["2025-03-01", "2025-03-10"])
        fake_acuity.reply("/availability/times", [{"time": "2025-03-10T13:00:00-0400"}])

        response = client.get(
            "/availability/range?appointmentTypeId=123&timezone=UTC&startDate=2025-03-05&endDate=2025-03-15"
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["dates"] == ["2025-03-10"]
        assert data["times"] == {"2025-03-10": ["2025-03-10T13:00:00-04:00"]}

    def test_end_before_start(self, client):
        response = client.get(
            "/availability/range?appointmentTypeId=123&timezone=UTC&startDate=2025-03-15&endDate=2025-03-05"
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid query"


class TestConfigMissing:
    def test_missing_credentials_is_500(self, monkeypatch, fake_acuity):
        monkeypatch.delenv("ACUITY_USER_ID", raising=False)
        monkeypatch.delenv("ACUITY_API_KEY", raising=False)
        app = create_app(Settings(), transport=fake_acuity.transport)

        with TestClient(app) as client:
            response = client.get(DAY_URL)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "CONFIG_MISSING"
        assert fake_acuity.requests == []


class TestRateLimiting:
    def test_eleventh_request_is_429(self, acuity_env, monkeypatch, fake_acuity):
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "10")
        fake_acuity.reply("/availability/times", [])
        app = create_app(Settings(), transport=fake_acuity.transport)

        with TestClient(app) as client:
            statuses = [client.get(DAY_URL).status_code for _ in range(11)]
            denied = client.get(DAY_URL)

        assert statuses == [200] * 10 + [429]
        assert denied.json()["error"]["retryAfter"] >= 0
        assert "retry-after" in denied.headers

    def test_remaining_header(self, client, fake_acuity):
        fake_acuity.reply("/availability/times", [])

        response = client.get(DAY_URL)

        assert response.headers["x-ratelimit-limit"] == "100"
        assert response.headers["x-ratelimit-remaining"] == "99"

    def test_disabled(self, acuity_env, monkeypatch, fake_acuity):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "1")
        fake_acuity.reply("/availability/times", [])
        app = create_app(Settings(), transport=fake_acuity.transport)

        with TestClient(app) as client:
            statuses = {client.get(DAY_URL).status_code for _ in range(3)}

        assert statuses == {200}


class TestHealth:
    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_reports_config_without_secrets(self, client):
        response = client.get("/health")

        body = response.json()
        assert body["status"] == "ok"
        assert body["upstream"]["configured"] is True
        assert body["cache"]["sweeping"] is True
        assert "secret-key" not in response.text

    def test_health_degraded_without_credentials(self, monkeypatch):
        monkeypatch.delenv("ACUITY_USER_ID", raising=False)
        monkeypatch.delenv("ACUITY_API_KEY", raising=False)

        with TestClient(create_app(Settings())) as client:
            body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["upstream"]["missing"] == ["ACUITY_USER_ID", "ACUITY_API_KEY"]
