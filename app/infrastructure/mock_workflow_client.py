"""Mock workflow client for testing and local development."""

from typing import Any, Dict, List, Optional, Tuple
import logging

from app.domain.interfaces import IWorkflowClient

logger = logging.getLogger(__name__)


class MockWorkflowClient(IWorkflowClient):
    """Records submitted jobs instead of calling the workflow engine.

    Set ``fail_with`` to make every submission raise that exception.
    """

    def __init__(self, fail_with: Optional[Exception] = None):
        self.jobs: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_with = fail_with

    async def submit_document_job(self, payload: Dict[str, Any]) -> None:
        self._record("document_processing", payload)

    async def submit_additional_sources_job(self, payload: Dict[str, Any]) -> None:
        self._record("additional_sources", payload)

    async def health_check(self) -> bool:
        return True

    def _record(self, workflow: str, payload: Dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        logger.info(f"Mock workflow: accepted {workflow} job")
        self.jobs.append((workflow, payload))
