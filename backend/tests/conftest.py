"""Shared fixtures: env-driven settings and a fake Acuity upstream."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from config import Settings


class FakeAcuity:
    """Records requests and answers from a path -> (status, body) table."""

    def __init__(self):
        self.routes: dict[str, tuple[int, object]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: Exception | None = None

    def reply(self, path: str, body, status: int = 200):
        self.routes[path] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        key = request.url.path.split("/api/v1", 1)[-1]
        date = request.url.params.get("date") or request.url.params.get("month")
        status, body = self.routes.get(f"{key}?{date}", self.routes.get(key, (404, {"message": "not found"})))
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, content=json.dumps(body).encode(), headers={"content-type": "application/json"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def acuity_env(monkeypatch):
    monkeypatch.setenv("ACUITY_USER_ID", "12345")
    monkeypatch.setenv("ACUITY_API_KEY", "secret-key")
    monkeypatch.setenv("ACUITY_BASE_URL", "https://acuity.test/api/v1")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "100")
    monkeypatch.setenv("ENVIRONMENT", "test")


@pytest.fixture
def settings(acuity_env) -> Settings:
    return Settings()


@pytest.fixture
def fake_acuity() -> FakeAcuity:
    return FakeAcuity()


@pytest.fixture
def client(settings, fake_acuity):
    app = create_app(settings, transport=fake_acuity.transport)
    with TestClient(app) as test_client:
        yield test_client
