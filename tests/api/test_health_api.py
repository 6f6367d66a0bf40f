"""HTTP tests for health checks and error rendering."""

import time

import httpx
import pytest
from fastapi import FastAPI

from app.api.middleware.rate_limit import RateLimitMiddleware, parse_rate_limit
from tests._fixtures import api_client, async_db, mock_storage, mock_workflow


class TestHealthApi:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/health", "/readiness", "/api/v1/health/", "/api/v1/health/live"])
    async def test_health_endpoints(self, api_client, path):
        response = await api_client.get(path)

        assert response.status_code == 200
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_ready_checks_database(self, api_client):
        response = await api_client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_cors_headers_on_errors(self, api_client):
        response = await api_client.get("/api/v1/sources/abc", headers={"Origin": "https://app.example.com"})

        assert response.status_code == 401
        assert response.headers["access-control-allow-origin"] == "*"


class TestRateLimitParsing:
    def test_parse(self):
        assert parse_rate_limit("300/hour") == (300, 3600)
        assert parse_rate_limit("10/minute") == (10, 60)

    def test_bad_limit_falls_back(self):
        assert parse_rate_limit("lots") == (100, 3600)


class ExhaustedRateLimit(RateLimitMiddleware):
    async def _check_rate_limit(self, key: str):
        return False, 0, time.time() + 30


class TestRateLimitMiddleware:
    @pytest.fixture
    async def limited_client(self):
        app = FastAPI()

        @app.get("/api/v1/sources/ping")
        async def ping():
            return {"ok": True}

        @app.post("/api/v1/webhooks/process-document-callback")
        async def callback():
            return {"ok": True}

        app.add_middleware(ExhaustedRateLimit, redis_url="redis://localhost:6379/0", limit="1/minute")
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client

    @pytest.mark.asyncio
    async def test_over_limit_answers_429(self, limited_client):
        response = await limited_client.get("/api/v1/sources/ping")

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["code"] == "RATE_LIMIT_EXCEEDED"
        assert 0 < error["details"]["retry_after"] <= 30
        assert response.headers["X-RateLimit-Limit"] == "1"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_engine_callbacks_are_not_limited(self, limited_client):
        response = await limited_client.post("/api/v1/webhooks/process-document-callback")

        assert response.status_code == 200
