"""Dependency injection container for service instantiation and composition."""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.services import (
    NotebookService,
    SourceDispatchService,
    SourceCallbackService,
    StaleSourceService,
    EmbeddingService,
    ChatHistoryService,
)
from app.domain.repositories import (
    ProfileRepository,
    NotebookRepository,
    SourceRepository,
    NoteRepository,
    EmbeddingRepository,
    ChatHistoryRepository,
)
from app.domain.interfaces import IStorageProvider, IWorkflowClient
from app.infrastructure.storage.mock_storage import MockStorageProvider
from app.infrastructure.storage.s3_storage import S3StorageProvider
from app.infrastructure.workflow_client import WebhookWorkflowClient
from app.infrastructure.mock_workflow_client import MockWorkflowClient
from app.core.config import settings

logger = logging.getLogger(__name__)


def _configured(*values: Optional[str]) -> bool:
    return all(value and value.strip() for value in values)


class ServiceContainer:
    """
    Dependency injection container providing centralized service composition.

    Responsibilities:
    - Initialize infrastructure providers (object store, workflow engine client)
    - Create repositories bound to the request's session
    - Instantiate services

    Usage:
        container = ServiceContainer(db_session)
        dispatcher = container.get_source_dispatch_service()
    """

    # Process-wide fallbacks so files stored through the mock survive across requests
    _fallback_storage: Optional[MockStorageProvider] = None
    _fallback_workflow_client: Optional[MockWorkflowClient] = None

    def __init__(
        self,
        db: AsyncSession,
        storage_provider: Optional[IStorageProvider] = None,
        workflow_client: Optional[IWorkflowClient] = None,
    ):
        """
        Initialize container with dependencies.

        If infrastructure providers are not provided and not configured,
        in-memory mock implementations are used.
        """
        self.db = db

        if storage_provider:
            self.storage_provider = storage_provider
        elif _configured(settings.S3_ACCESS_KEY_ID, settings.S3_SECRET_ACCESS_KEY):
            self.storage_provider = S3StorageProvider(bucket_name=settings.S3_SOURCES_BUCKET)
        else:
            self.storage_provider = self._get_fallback_storage()

        if workflow_client:
            self.workflow_client = workflow_client
        elif _configured(settings.DOCUMENT_PROCESSING_WEBHOOK_URL, settings.ADDITIONAL_SOURCES_WEBHOOK_URL):
            self.workflow_client = WebhookWorkflowClient()
        else:
            self.workflow_client = self._get_fallback_workflow_client()

        logger.debug(
            "ServiceContainer initialized",
            extra={
                "storage": self.storage_provider.__class__.__name__,
                "workflow_client": self.workflow_client.__class__.__name__,
            },
        )

    @classmethod
    def _get_fallback_storage(cls) -> MockStorageProvider:
        if cls._fallback_storage is None:
            logger.warning("S3 not configured - using MockStorageProvider. Files will not be persisted.")
            cls._fallback_storage = MockStorageProvider()
        return cls._fallback_storage

    @classmethod
    def _get_fallback_workflow_client(cls) -> MockWorkflowClient:
        if cls._fallback_workflow_client is None:
            logger.warning("Workflow webhooks not configured - using MockWorkflowClient. Jobs will not be processed.")
            cls._fallback_workflow_client = MockWorkflowClient()
        return cls._fallback_workflow_client

    @staticmethod
    def get_callback_url() -> str:
        """Address the workflow engine reports processing results to."""
        return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{settings.API_V1_STR}/webhooks/process-document-callback"

    # ========================================================================
    # REPOSITORY FACTORIES
    # ========================================================================

    def get_profile_repository(self) -> ProfileRepository:
        return ProfileRepository(self.db)

    def get_notebook_repository(self) -> NotebookRepository:
        return NotebookRepository(self.db)

    def get_source_repository(self) -> SourceRepository:
        return SourceRepository(self.db)

    def get_note_repository(self) -> NoteRepository:
        return NoteRepository(self.db)

    def get_embedding_repository(self) -> EmbeddingRepository:
        return EmbeddingRepository(self.db)

    def get_chat_history_repository(self) -> ChatHistoryRepository:
        return ChatHistoryRepository(self.db)

    # ========================================================================
    # SERVICE FACTORIES
    # ========================================================================

    def get_notebook_service(self) -> NotebookService:
        """
        Get NotebookService instance.

        Service composition:
        - NotebookRepository, SourceRepository, NoteRepository
        - EmbeddingRepository, ChatHistoryRepository (cleanup on delete)
        - IStorageProvider (stored file cleanup)
        """
        return NotebookService(
            notebook_repo=self.get_notebook_repository(),
            source_repo=self.get_source_repository(),
            note_repo=self.get_note_repository(),
            embedding_repo=self.get_embedding_repository(),
            chat_history_repo=self.get_chat_history_repository(),
            storage_provider=self.storage_provider,
            max_notebooks_per_user=settings.MAX_NOTEBOOKS_PER_USER,
        )

    def get_source_dispatch_service(self) -> SourceDispatchService:
        """
        Get SourceDispatchService instance.

        Service composition:
        - AsyncSession (commits the claim before the outbound call)
        - SourceRepository, NotebookRepository
        - IStorageProvider, IWorkflowClient
        """
        return SourceDispatchService(
            db=self.db,
            source_repo=self.get_source_repository(),
            notebook_repo=self.get_notebook_repository(),
            storage_provider=self.storage_provider,
            workflow_client=self.workflow_client,
            callback_url=self.get_callback_url(),
            signed_url_expires_in=settings.SIGNED_URL_EXPIRES_SECONDS,
        )

    def get_source_callback_service(self) -> SourceCallbackService:
        return SourceCallbackService(
            source_repo=self.get_source_repository(),
            notebook_repo=self.get_notebook_repository(),
        )

    def get_stale_source_service(self) -> StaleSourceService:
        return StaleSourceService(
            source_repo=self.get_source_repository(),
            stale_after_minutes=settings.SOURCE_STALE_AFTER_MINUTES,
        )

    def get_embedding_service(self) -> EmbeddingService:
        return EmbeddingService(
            notebook_repo=self.get_notebook_repository(),
            embedding_repo=self.get_embedding_repository(),
            dimension=settings.EMBEDDING_DIMENSION,
            max_results=settings.MAX_SIMILARITY_RESULTS,
        )

    def get_chat_history_service(self) -> ChatHistoryService:
        return ChatHistoryService(
            notebook_repo=self.get_notebook_repository(),
            chat_history_repo=self.get_chat_history_repository(),
        )
