"""Webhook client for the external workflow engine."""

import time
import logging
from typing import Any, Dict, Optional

import httpx

from app.domain.interfaces import IWorkflowClient
from app.domain.errors import ExternalServiceError, ErrorCode
from app.core.config import settings
from app.infrastructure.monitoring.logging_setup import log_performance

logger = logging.getLogger(__name__)


class WebhookWorkflowClient(IWorkflowClient):
    """Posts processing jobs to the workflow engine's webhooks.

    A job counts as handed off once the engine answers 2xx. Results arrive
    later on the callback endpoint.
    """

    SERVICE_NAME = "workflow-engine"

    def __init__(
        self,
        document_webhook_url: Optional[str] = None,
        additional_sources_webhook_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.document_webhook_url = document_webhook_url or settings.DOCUMENT_PROCESSING_WEBHOOK_URL
        self.additional_sources_webhook_url = (
            additional_sources_webhook_url or settings.ADDITIONAL_SOURCES_WEBHOOK_URL
        )
        self.auth_token = auth_token or settings.WEBHOOK_AUTH_TOKEN
        self.timeout_seconds = timeout_seconds or settings.WEBHOOK_TIMEOUT_SECONDS
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

        if not self.auth_token:
            logger.warning("WEBHOOK_AUTH_TOKEN not set - workflow webhooks will be called without credentials")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def submit_document_job(self, payload: Dict[str, Any]) -> None:
        await self._post(self.document_webhook_url, payload, "document_processing")

    async def submit_additional_sources_job(self, payload: Dict[str, Any]) -> None:
        await self._post(self.additional_sources_webhook_url, payload, "additional_sources")

    async def health_check(self) -> bool:
        return bool(self.document_webhook_url and self.additional_sources_webhook_url)

    async def _post(self, url: Optional[str], payload: Dict[str, Any], workflow: str) -> None:
        if not url:
            raise ExternalServiceError(
                f"Webhook URL for workflow '{workflow}' is not configured",
                service_name=self.SERVICE_NAME,
                code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            )

        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Workflow '{workflow}' webhook timed out after {self.timeout_seconds}s")
            raise ExternalServiceError(
                f"Workflow engine did not answer within {self.timeout_seconds}s",
                service_name=self.SERVICE_NAME,
                original_error=e,
                code=ErrorCode.EXTERNAL_SERVICE_TIMEOUT,
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Workflow '{workflow}' webhook rejected the job: {e.response.status_code}",
                extra={"response_body": e.response.text[:500]},
            )
            raise ExternalServiceError(
                f"Workflow engine rejected the job with status {e.response.status_code}",
                service_name=self.SERVICE_NAME,
                original_error=e,
                details={"upstream_status": e.response.status_code},
            )
        except httpx.HTTPError as e:
            logger.error(f"Workflow '{workflow}' webhook unreachable: {e}")
            raise ExternalServiceError(
                "Workflow engine is unreachable",
                service_name=self.SERVICE_NAME,
                original_error=e,
                code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            )
        finally:
            log_performance(
                logger,
                f"workflow_webhook_{workflow}",
                time.time() - start_time,
                resource="workflow_engine",
            )

        logger.info(f"Workflow '{workflow}' accepted job", extra={"workflow": workflow})
