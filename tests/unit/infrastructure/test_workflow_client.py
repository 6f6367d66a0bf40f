"""Tests for the workflow engine webhook client using httpx.MockTransport."""

import json

import httpx
import pytest

from app.infrastructure.workflow_client import WebhookWorkflowClient
from app.domain.errors import ExternalServiceError, ErrorCode

DOCUMENT_URL = "https://engine.example.com/webhook/process-document"
SOURCES_URL = "https://engine.example.com/webhook/process-additional-sources"


def _client(handler, auth_token="engine-token") -> WebhookWorkflowClient:
    return WebhookWorkflowClient(
        document_webhook_url=DOCUMENT_URL,
        additional_sources_webhook_url=SOURCES_URL,
        auth_token=auth_token,
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


class TestWebhookWorkflowClient:
    @pytest.mark.asyncio
    async def test_posts_document_job_with_bearer_token(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"accepted": True})

        await _client(handler).submit_document_job({"source_id": "s1", "file_url": "https://files/x"})

        assert len(seen) == 1
        request = seen[0]
        assert str(request.url) == DOCUMENT_URL
        assert request.headers["Authorization"] == "Bearer engine-token"
        assert json.loads(request.content) == {"source_id": "s1", "file_url": "https://files/x"}

    @pytest.mark.asyncio
    async def test_additional_sources_go_to_their_webhook(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(202)

        await _client(handler).submit_additional_sources_job({"type": "copied-text"})

        assert seen == [SOURCES_URL]

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self, monkeypatch):
        monkeypatch.setattr("app.infrastructure.workflow_client.settings.WEBHOOK_AUTH_TOKEN", None)
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        await _client(handler, auth_token=None).submit_document_job({})

        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_non_2xx_is_external_service_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="workflow crashed")

        with pytest.raises(ExternalServiceError) as exc_info:
            await _client(handler).submit_document_job({})

        assert exc_info.value.http_status_code == 502
        assert exc_info.value.details["upstream_status"] == 500

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            await _client(handler).submit_document_job({})

        assert exc_info.value.code == ErrorCode.EXTERNAL_SERVICE_TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            await _client(handler).submit_document_job({})

        assert exc_info.value.code == ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unconfigured_webhook(self, monkeypatch):
        monkeypatch.setattr(
            "app.infrastructure.workflow_client.settings.ADDITIONAL_SOURCES_WEBHOOK_URL", None
        )
        client = WebhookWorkflowClient(
            document_webhook_url=DOCUMENT_URL,
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )

        with pytest.raises(ExternalServiceError):
            await client.submit_additional_sources_job({})
        assert not await client.health_check()
