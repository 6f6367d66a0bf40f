"""Applies results reported by the workflow engine to sources and notebooks."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app.domain.models.notebook import Notebook
from app.domain.models.source import Source
from app.domain.repositories.notebook_repository import NotebookRepository, SourceRepository
from app.domain.schemas.source import SourceCallbackPayload, AudioOverviewCallbackPayload
from app.domain.source_state import SourceStatus, allowed_predecessors, callback_target_status
from app.domain.errors import (
    ValidationError,
    NotFoundError,
    InvalidStateTransitionError,
    StorageError,
    ErrorCode,
)
from app.core.utils import is_valid_uuid
from app.infrastructure.monitoring.logging_setup import log_source_transition

logger = logging.getLogger(__name__)


class SourceCallbackService:
    """
    Reconciles engine callbacks into the store.

    Callbacks may arrive late, twice, or after the user deleted the source.
    Each one is applied as a single guarded UPDATE: it either matches a row
    whose current status allows the requested one, or changes nothing.
    Replaying a callback that already landed is a no-op edge, so duplicate
    delivery leaves the row as it was.
    """

    def __init__(self, source_repo: SourceRepository, notebook_repo: NotebookRepository):
        self.source_repo = source_repo
        self.notebook_repo = notebook_repo

    async def apply_result(self, payload: SourceCallbackPayload) -> Source:
        """
        Apply a document/additional-sources processing result.

        Raises:
            ValidationError: source_id missing or status unknown
            NotFoundError: source (or its notebook) does not exist
            InvalidStateTransitionError: the source's status does not allow the result
            StorageError: the update could not be written
        """
        if not payload.source_id:
            raise ValidationError("source_id is required", code=ErrorCode.MISSING_REQUIRED_FIELD)

        source_id = payload.source_id
        target = callback_target_status(payload.status, payload.error)

        if not is_valid_uuid(source_id):
            raise NotFoundError(f"Source {source_id} not found", resource_type="Source", resource_id=source_id)

        fields = {}
        if payload.content:
            fields["content"] = payload.content
        if payload.summary:
            fields["summary"] = payload.summary
        if payload.display_name:
            fields["display_name"] = payload.display_name
        # An explicit title wins; display_name is the engine's older name for it
        if payload.title:
            fields["title"] = payload.title
        elif payload.display_name:
            fields["title"] = payload.display_name

        try:
            source = await self.source_repo.transition(
                source_id,
                target,
                allowed_predecessors(target),
                **fields,
            )
            if source is None:
                existing = await self.source_repo.get_by_id(source_id)
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to update source",
                original_error=e,
                details={"source_id": source_id},
            )

        if source is None:
            if existing is None:
                raise NotFoundError(f"Source {source_id} not found", resource_type="Source", resource_id=source_id)
            raise InvalidStateTransitionError(existing.processing_status, target, source_id=source_id)

        if payload.error:
            logger.error(
                f"Workflow engine reported failure for source {source_id}",
                extra={"source_id": source_id, "engine_error": str(payload.error)},
            )
        log_source_transition(
            logger,
            source_id,
            None,
            target,
            "callback",
            extra_data={"fields": sorted(fields)},
        )
        return source

    async def apply_audio_overview_result(self, payload: AudioOverviewCallbackPayload) -> Notebook:
        """Record the outcome of an audio overview generation job on its notebook."""
        if not payload.notebook_id:
            raise ValidationError("notebook_id is required", code=ErrorCode.MISSING_REQUIRED_FIELD)

        notebook_id = payload.notebook_id
        if not is_valid_uuid(notebook_id):
            raise NotFoundError(f"Notebook {notebook_id} not found", resource_type="Notebook", resource_id=notebook_id)

        if payload.error:
            status = SourceStatus.FAILED.value
        else:
            status = payload.status or SourceStatus.COMPLETED.value

        try:
            notebook = await self.notebook_repo.update_audio_overview(
                notebook_id,
                status=status,
                audio_url=None if payload.error else payload.audio_url,
                expires_at=payload.expires_at,
            )
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to update notebook audio overview",
                original_error=e,
                details={"notebook_id": notebook_id},
            )

        if notebook is None:
            raise NotFoundError(f"Notebook {notebook_id} not found", resource_type="Notebook", resource_id=notebook_id)

        if payload.error:
            logger.error(
                f"Audio overview generation failed for notebook {notebook_id}",
                extra={"notebook_id": notebook_id, "engine_error": str(payload.error)},
            )
        else:
            logger.info(f"Audio overview {status} for notebook {notebook_id}")
        return notebook
