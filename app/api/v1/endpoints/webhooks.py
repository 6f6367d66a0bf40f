"""
Inbound webhooks called by the workflow engine.

Endpoints:
- Document/additional-sources processing result
- Audio overview generation result

The engine does not authenticate as a user. When WEBHOOK_CALLBACK_TOKEN is
configured it must send it as a bearer token.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_service_container
from app.core.security import verify_callback_token
from app.domain.errors import DomainError, StorageError
from app.domain.schemas.notebook import NotebookResponse
from app.domain.schemas.source import (
    SourceCallbackPayload,
    AudioOverviewCallbackPayload,
    SourceResponse,
    CallbackResponse,
)
from app.infrastructure.container import ServiceContainer
from app.infrastructure.database.session import get_db_session

router = APIRouter(dependencies=[Depends(verify_callback_token)])
logger = logging.getLogger(__name__)


# ============================================================================
# DEPENDENCY PROVIDERS
# ============================================================================

async def get_source_callback_service(container: ServiceContainer = Depends(get_service_container)):
    """Get SourceCallbackService from container."""
    return container.get_source_callback_service()


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post("/process-document-callback", response_model=CallbackResponse)
async def process_document_callback(
    payload: SourceCallbackPayload,
    service=Depends(get_source_callback_service),
    db: AsyncSession = Depends(get_db_session),
):
    """
    Apply a processing result to its source.

    Responds 400 without a source_id, 404 for an unknown source, 409 when the
    source's status does not allow the result and 500 when the write fails
    (the engine retries on 5xx).
    """
    logger.info(
        "Document processing callback received",
        extra={
            "source_id": payload.source_id,
            "status": payload.status,
            "has_error": bool(payload.error),
            "fields": sorted(payload.model_dump(exclude_none=True)),
        },
    )
    try:
        source = await service.apply_result(payload)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError(
            "Failed to update source",
            original_error=e,
            details={"source_id": payload.source_id},
        )

    return CallbackResponse(
        success=True,
        message="Source updated successfully",
        data=SourceResponse.model_validate(source).model_dump(mode="json"),
    )


@router.post("/audio-generation-callback", response_model=CallbackResponse)
async def audio_generation_callback(
    payload: AudioOverviewCallbackPayload,
    service=Depends(get_source_callback_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Record an audio overview result on its notebook."""
    logger.info(
        "Audio generation callback received",
        extra={"notebook_id": payload.notebook_id, "status": payload.status, "has_error": bool(payload.error)},
    )
    try:
        notebook = await service.apply_audio_overview_result(payload)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError(
            "Failed to update notebook",
            original_error=e,
            details={"notebook_id": payload.notebook_id},
        )

    return CallbackResponse(
        success=True,
        message="Audio overview updated successfully",
        data=NotebookResponse.model_validate(notebook).model_dump(mode="json"),
    )
