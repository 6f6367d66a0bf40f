"""Hands sources to the external workflow engine and tracks the hand-off."""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import is_http_url
from app.domain.models.source import Source
from app.domain.repositories.notebook_repository import NotebookRepository, SourceRepository
from app.domain.schemas.source import AdditionalSourcesRequest
from app.domain.source_state import (
    SourceStatus,
    SourceType,
    FILE_BACKED_TYPES,
    URL_TYPES,
    TERMINAL_STATUSES,
    parse_source_type,
    ensure_transition,
)
from app.domain.interfaces import IStorageProvider, IWorkflowClient
from app.domain.errors import (
    ValidationError,
    NotFoundError,
    ConflictError,
    InvalidStateTransitionError,
    ExternalServiceError,
    StorageError,
    ErrorCode,
)
from app.infrastructure.storage.bucket_policy import BucketPolicy, SOURCES_BUCKET, validate_source_file_type
from app.infrastructure.monitoring.logging_setup import log_error, log_source_transition

logger = logging.getLogger(__name__)

# Statuses a source can be claimed for processing from
CLAIMABLE_FOR_DOCUMENT = frozenset({SourceStatus.PENDING, SourceStatus.UPLOADING})
CLAIMABLE_FOR_BATCH = frozenset({SourceStatus.PENDING})

BATCH_SOURCE_TYPES = {
    "multiple-websites": URL_TYPES,
    "copied-text": frozenset({SourceType.TEXT}),
}


class SourceDispatchService:
    """
    Job dispatcher for the source pipeline.

    Each entry point validates the request, claims the sources
    (``-> processing``) and commits before calling the workflow engine, so a
    callback racing the webhook response always finds the claim. When the
    engine cannot be reached the claimed sources are failed and the error
    propagates; nothing is left in ``processing`` by a failed hand-off.

    The service commits on the session it is given because the claim and
    the failure mark are separate transactions around the outbound call.
    """

    def __init__(
        self,
        db: AsyncSession,
        source_repo: SourceRepository,
        notebook_repo: NotebookRepository,
        storage_provider: IStorageProvider,
        workflow_client: IWorkflowClient,
        callback_url: str,
        signed_url_expires_in: int = 3600,
        bucket_policy: BucketPolicy = SOURCES_BUCKET,
    ):
        self.db = db
        self.source_repo = source_repo
        self.notebook_repo = notebook_repo
        self.storage_provider = storage_provider
        self.workflow_client = workflow_client
        self.callback_url = callback_url
        self.signed_url_expires_in = signed_url_expires_in
        self.bucket_policy = bucket_policy

    # ========================================================================
    # UPLOAD
    # ========================================================================

    async def upload_source_file(
        self,
        source_id: str,
        user_id: str,
        filename: str,
        content: bytes,
        content_type: str,
    ) -> Source:
        """
        Store the bytes of a file-backed source.

        The source moves to ``uploading`` first; it stays there with
        ``file_path`` recorded until the client dispatches it.

        Raises:
            NotFoundError: source missing or not owned
            ValidationError: not a file-backed source, or file rejected by the bucket policy
            InvalidStateTransitionError: source already past upload
            StorageError: object store failed (source is marked failed)
        """
        source = await self._get_owned_source(source_id, user_id)
        if source.type not in FILE_BACKED_TYPES:
            raise ValidationError(f"Sources of type '{source.type.value}' do not take file uploads")
        self.bucket_policy.validate(content_type, len(content))
        validate_source_file_type(source.type, content_type)
        ensure_transition(source.processing_status, SourceStatus.UPLOADING, source.type, source_id)

        previous = source.processing_status
        claimed = await self.source_repo.transition(source_id, SourceStatus.UPLOADING, CLAIMABLE_FOR_DOCUMENT)
        if claimed is None:
            raise InvalidStateTransitionError(previous, SourceStatus.UPLOADING, source_id=source_id)
        await self.db.commit()
        log_source_transition(logger, source_id, previous, SourceStatus.UPLOADING, "upload")

        key = self.storage_key_for(claimed, filename)
        try:
            await self.storage_provider.store(
                key,
                content,
                metadata={"content_type": content_type, "filename": filename},
            )
        except Exception as e:
            await self._fail_sources([claimed], e, from_states={SourceStatus.UPLOADING}, trigger="upload")
            raise StorageError(
                "Failed to store uploaded file",
                original_error=e,
                code=ErrorCode.STORAGE_ERROR,
                details={"source_id": source_id, "file_path": key},
            )

        stored = await self.source_repo.transition(
            source_id,
            SourceStatus.UPLOADING,
            {SourceStatus.UPLOADING},
            file_path=key,
            file_size=len(content),
        )
        if stored is None:
            current = await self.source_repo.get_by_id(source_id)
            if current is None:
                raise NotFoundError(f"Source {source_id} not found", resource_type="Source", resource_id=source_id)
            raise InvalidStateTransitionError(current.processing_status, SourceStatus.UPLOADING, source_id=source_id)

        logger.info(f"Stored {len(content)} bytes for source {source_id} at {key}")
        return stored

    @staticmethod
    def storage_key_for(source: Source, filename: Optional[str]) -> str:
        """Object key of a source's file: ``{notebook_id}/{source_id}{.ext}``."""
        ext = os.path.splitext(filename or "")[1].lower()
        return f"{source.notebook_id}/{source.id}{ext}"

    # ========================================================================
    # DOCUMENT SUBMISSION
    # ========================================================================

    async def process_document(
        self,
        source_id: str,
        file_path: str,
        source_type: str,
        user_id: str,
    ) -> Source:
        """
        Claim a file-backed source and hand it to the document workflow.

        Raises:
            ValidationError: bad source type, path outside the notebook, or file not stored
            NotFoundError: source missing or not owned
            InvalidStateTransitionError: source not pending/uploading
            ExternalServiceError: engine did not accept the job (source marked failed)
        """
        parsed_type = parse_source_type(source_type)
        source = await self._get_owned_source(source_id, user_id)

        if parsed_type is not source.type:
            raise ValidationError(
                f"sourceType '{parsed_type.value}' does not match source type '{source.type.value}'",
                code=ErrorCode.INVALID_INPUT,
            )
        if parsed_type not in FILE_BACKED_TYPES:
            raise ValidationError(
                f"Sources of type '{parsed_type.value}' are submitted with process-additional-sources",
                code=ErrorCode.INVALID_INPUT,
            )
        self._check_file_path(source, file_path)
        await self._ensure_file_stored(file_path)

        previous = source.processing_status
        claimed = await self.source_repo.transition(
            source_id,
            SourceStatus.PROCESSING,
            CLAIMABLE_FOR_DOCUMENT,
            file_path=file_path,
        )
        if claimed is None:
            raise InvalidStateTransitionError(previous, SourceStatus.PROCESSING, source_id=source_id)
        await self.db.commit()
        log_source_transition(logger, source_id, previous, SourceStatus.PROCESSING, "dispatch")

        try:
            file_url = await self.storage_provider.get_signed_url(file_path, expires_in=self.signed_url_expires_in)
            await self.workflow_client.submit_document_job({
                "source_id": source_id,
                "file_url": file_url,
                "file_path": file_path,
                "source_type": parsed_type.value,
                "callback_url": self.callback_url,
            })
        except Exception as e:
            await self._fail_sources([claimed], e, trigger="dispatch")
            raise self._as_upstream_error(e, [source_id])

        logger.info(f"Source {source_id} handed to document processing workflow")
        return claimed

    # ========================================================================
    # BATCH SUBMISSION
    # ========================================================================

    async def process_additional_sources(
        self,
        request: AdditionalSourcesRequest,
        user_id: str,
    ) -> List[Source]:
        """
        Claim a batch of website or copied-text sources and hand them over as one job.

        The id count must match the item count (one per url, one for pasted
        text). All sources are claimed in one statement or none are.
        """
        items = self._batch_items(request)
        if len(request.source_ids) != len(items):
            raise ValidationError(
                f"Got {len(request.source_ids)} source ids for {len(items)} item(s)",
                code=ErrorCode.INVALID_INPUT,
                details={"source_ids": len(request.source_ids), "items": len(items)},
            )

        notebook_id = request.notebook_id
        if not await self.notebook_repo.is_owner(notebook_id, user_id):
            raise NotFoundError(
                f"Notebook {notebook_id} not found or user not authorized",
                resource_type="Notebook",
                resource_id=notebook_id,
            )

        sources = await self.source_repo.list_by_ids(notebook_id, request.source_ids)
        found = {source.id for source in sources}
        missing = [source_id for source_id in request.source_ids if source_id not in found]
        if missing:
            raise NotFoundError(
                f"{len(missing)} source(s) not found in notebook {notebook_id}",
                resource_type="Source",
                details={"source_ids": missing},
            )
        allowed_types = BATCH_SOURCE_TYPES[request.type]
        wrong_type = [source.id for source in sources if source.type not in allowed_types]
        if wrong_type:
            raise ValidationError(
                f"Sources {wrong_type} cannot be submitted as '{request.type}'",
                code=ErrorCode.INVALID_INPUT,
            )

        claimed = await self.source_repo.transition_many(
            notebook_id,
            request.source_ids,
            SourceStatus.PROCESSING,
            CLAIMABLE_FOR_BATCH,
        )
        if len(claimed) != len(request.source_ids):
            claimed_ids = {source.id for source in claimed}
            busy = {
                source.id: source.processing_status.value
                for source in sources
                if source.id not in claimed_ids
            }
            await self.db.rollback()
            raise ConflictError(
                "All sources of a batch must be pending",
                code=ErrorCode.INVALID_STATE_TRANSITION,
                details={"sources": busy},
            )
        await self.db.commit()
        for source in claimed:
            log_source_transition(logger, source.id, SourceStatus.PENDING, SourceStatus.PROCESSING, "dispatch")

        payload: Dict[str, Any] = {
            "type": request.type,
            "notebookId": notebook_id,
            "sourceIds": list(request.source_ids),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "callbackUrl": self.callback_url,
        }
        if request.type == "multiple-websites":
            payload["urls"] = items
        else:
            payload["content"] = items[0]
            if request.title:
                payload["title"] = request.title

        try:
            await self.workflow_client.submit_additional_sources_job(payload)
        except Exception as e:
            await self._fail_sources(claimed, e, trigger="dispatch")
            raise self._as_upstream_error(e, list(request.source_ids))

        logger.info(f"{len(claimed)} source(s) handed to additional sources workflow ({request.type})")
        return claimed

    # ========================================================================
    # RESUBMISSION
    # ========================================================================

    async def resubmit_source(self, source_id: str, user_id: str) -> Source:
        """
        Start a new processing attempt for a completed or failed source.

        The source is reset to ``pending`` with ``metadata.attempt`` bumped
        and dispatched again through the entry point matching its type; the
        reset and the new claim commit together.
        """
        source = await self._get_owned_source(source_id, user_id)
        if source.processing_status not in TERMINAL_STATUSES:
            raise InvalidStateTransitionError(source.processing_status, SourceStatus.PENDING, source_id=source_id)

        if source.type in FILE_BACKED_TYPES and source.file_path:
            route = "document"
        elif source.type in URL_TYPES and source.url:
            route = "multiple-websites"
        elif source.type is SourceType.TEXT and source.content:
            route = "copied-text"
        else:
            raise ValidationError(
                f"Source {source_id} has nothing to resubmit (no stored file, url or content)",
                code=ErrorCode.INVALID_INPUT,
            )

        metadata = dict(source.metadata_ or {})
        metadata["attempt"] = int(metadata.get("attempt", 1)) + 1
        metadata.pop("processing_error", None)

        previous = source.processing_status
        reset = await self.source_repo.transition(
            source_id,
            SourceStatus.PENDING,
            TERMINAL_STATUSES,
            metadata_=metadata,
        )
        if reset is None:
            raise InvalidStateTransitionError(previous, SourceStatus.PENDING, source_id=source_id)
        log_source_transition(
            logger, source_id, previous, SourceStatus.PENDING, "resubmit",
            extra_data={"attempt": metadata["attempt"]},
        )

        if route == "document":
            return await self.process_document(source_id, reset.file_path, reset.type.value, user_id)

        request = AdditionalSourcesRequest(
            type=route,
            notebook_id=reset.notebook_id,
            source_ids=[source_id],
            urls=[reset.url] if route == "multiple-websites" else None,
            content=reset.content if route == "copied-text" else None,
            title=reset.title,
        )
        claimed = await self.process_additional_sources(request, user_id)
        return claimed[0]

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _get_owned_source(self, source_id: str, user_id: str) -> Source:
        source = await self.source_repo.get_by_id_and_owner(source_id, user_id)
        if not source:
            raise NotFoundError(
                f"Source {source_id} not found or user not authorized",
                resource_type="Source",
                resource_id=source_id,
            )
        return source

    @staticmethod
    def _check_file_path(source: Source, file_path: str) -> None:
        segments = file_path.split("/")
        if segments[0] != str(source.notebook_id) or len(segments) < 2 or ".." in segments:
            raise ValidationError(
                "filePath must lie in the source's notebook folder",
                code=ErrorCode.INVALID_INPUT,
                details={"file_path": file_path, "expected_prefix": f"{source.notebook_id}/"},
            )

    async def _ensure_file_stored(self, file_path: str) -> None:
        try:
            stored = await self.storage_provider.exists(file_path)
        except Exception as e:
            raise StorageError(
                "Could not check the object store",
                original_error=e,
                code=ErrorCode.STORAGE_ERROR,
                details={"file_path": file_path},
            )
        if not stored:
            raise ValidationError(
                f"No uploaded file at {file_path}",
                code=ErrorCode.INVALID_INPUT,
                details={"file_path": file_path},
            )

    @staticmethod
    def _batch_items(request: AdditionalSourcesRequest) -> List[str]:
        if request.type == "multiple-websites":
            urls = [url.strip() for url in (request.urls or [])]
            if not urls:
                raise ValidationError("urls are required for multiple-websites", code=ErrorCode.MISSING_REQUIRED_FIELD)
            for url in urls:
                if not is_http_url(url):
                    raise ValidationError(f"Invalid url: {url!r}", code=ErrorCode.INVALID_INPUT)
            return urls

        if not request.content or not request.content.strip():
            raise ValidationError("content is required for copied-text", code=ErrorCode.MISSING_REQUIRED_FIELD)
        return [request.content]

    async def _fail_sources(
        self,
        sources: Iterable[Source],
        error: Exception,
        trigger: str,
        from_states=frozenset({SourceStatus.PROCESSING}),
    ) -> None:
        """Mark sources failed after a hand-off error and commit."""
        sources = list(sources)
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        for source in sources:
            metadata = dict(source.metadata_ or {})
            metadata["processing_error"] = message
            failed = await self.source_repo.transition(
                source.id,
                SourceStatus.FAILED,
                from_states,
                metadata_=metadata,
            )
            if failed is None:
                # A callback (or delete) got there first
                logger.warning(f"Source {source.id} was no longer {sorted(s.value for s in from_states)} when failing it")
                continue
            log_source_transition(logger, source.id, None, SourceStatus.FAILED, trigger, extra_data={"error": message})
        await self.db.commit()
        log_error(logger, error, context=f"source_{trigger}", extra_data={"source_ids": [s.id for s in sources]})

    @staticmethod
    def _as_upstream_error(error: Exception, source_ids: List[str]) -> ExternalServiceError:
        if isinstance(error, ExternalServiceError):
            error.details.setdefault("source_ids", source_ids)
            return error
        return ExternalServiceError(
            "Failed to hand the sources to the workflow engine",
            service_name="workflow-engine",
            original_error=error,
            details={"source_ids": source_ids},
        )
