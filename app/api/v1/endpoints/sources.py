"""
Source endpoints: uploads and hand-off to the workflow engine.

Endpoints:
- Submit an uploaded document for processing
- Submit a batch of websites or copied text for processing
- Upload the file of a file-backed source
- Resubmit a completed or failed source
- Get, rename and delete a source

Dispatch endpoints commit the claim themselves (inside the service) before
the engine is called; a failed hand-off answers 502 with the sources
already marked failed.
"""

import logging
from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_service_container
from app.domain.models.profile import Profile
from app.domain.schemas.source import (
    ProcessDocumentRequest,
    AdditionalSourcesRequest,
    SourceUpdate,
    SourceResponse,
    DispatchResponse,
)
from app.domain.errors import DomainError
from app.infrastructure.container import ServiceContainer
from app.infrastructure.database.session import get_db_session

router = APIRouter()
logger = logging.getLogger(__name__)


# ============================================================================
# DEPENDENCY PROVIDERS
# ============================================================================

async def get_source_dispatch_service(container: ServiceContainer = Depends(get_service_container)):
    """Get SourceDispatchService from container."""
    return container.get_source_dispatch_service()


async def get_notebook_service(container: ServiceContainer = Depends(get_service_container)):
    """Get NotebookService from container."""
    return container.get_notebook_service()


# ============================================================================
# DISPATCH
# ============================================================================

@router.post("/process-document", response_model=DispatchResponse)
async def process_document(
    request: ProcessDocumentRequest,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_source_dispatch_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Hand an uploaded pdf, text or audio source to the document workflow."""
    try:
        source = await service.process_document(
            source_id=request.source_id,
            file_path=request.file_path,
            source_type=request.source_type,
            user_id=current_user.id,
        )
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return DispatchResponse(
        success=True,
        message="Document processing started",
        sources=[SourceResponse.model_validate(source)],
    )


@router.post("/process-additional-sources", response_model=DispatchResponse)
async def process_additional_sources(
    request: AdditionalSourcesRequest,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_source_dispatch_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Hand a batch of website urls or one copied text to the additional sources workflow."""
    try:
        sources = await service.process_additional_sources(request, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return DispatchResponse(
        success=True,
        message=f"Processing started for {len(sources)} source(s)",
        sources=[SourceResponse.model_validate(s) for s in sources],
    )


@router.post("/{source_id}/upload", response_model=SourceResponse)
async def upload_source_file(
    source_id: str,
    file: UploadFile = File(...),
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_source_dispatch_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Store the file of a pdf, text or audio source. The source stays in ``uploading``."""
    # One byte past the limit is enough for the size check to reject it
    content = await file.read(service.bucket_policy.max_bytes + 1)
    try:
        source = await service.upload_source_file(
            source_id=source_id,
            user_id=current_user.id,
            filename=file.filename or "",
            content=content,
            content_type=file.content_type or "application/octet-stream",
        )
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    logger.info(f"Upload stored for source {source_id}", extra={"file_size": len(content)})
    return SourceResponse.model_validate(source)


@router.post("/{source_id}/resubmit", response_model=DispatchResponse)
async def resubmit_source(
    source_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_source_dispatch_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Start a new processing attempt for a completed or failed source."""
    try:
        source = await service.resubmit_source(source_id=source_id, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return DispatchResponse(
        success=True,
        message="Source resubmitted",
        sources=[SourceResponse.model_validate(source)],
    )


# ============================================================================
# CRUD
# ============================================================================

@router.get("/{source_id}", response_model=SourceResponse)
async def get_source(
    source_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
):
    """Get a source, including its processing status and results."""
    source = await service.get_source(source_id=source_id, user_id=current_user.id)
    return SourceResponse.model_validate(source)


@router.patch("/{source_id}", response_model=SourceResponse)
async def update_source(
    source_id: str,
    source_in: SourceUpdate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename a source."""
    try:
        source = await service.update_source(
            source_id=source_id,
            user_id=current_user.id,
            **source_in.model_dump(exclude_unset=True),
        )
        await db.commit()
        await db.refresh(source)
    except DomainError:
        await db.rollback()
        raise

    return SourceResponse.model_validate(source)


@router.delete("/{source_id}", status_code=status.HTTP_200_OK)
async def delete_source(
    source_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a source with its embedding records and stored file."""
    try:
        file_paths = await service.delete_source(source_id=source_id, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    await service.remove_stored_files(file_paths)

    logger.info(f"Source deleted: {source_id}")
    return {"message": "Source deleted successfully"}
