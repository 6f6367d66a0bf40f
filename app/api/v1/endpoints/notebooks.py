"""
Notebook endpoints using the service layer.

Endpoints are thin HTTP handlers that:
- Validate requests using Pydantic schemas
- Get services from the DI container
- Call services for business logic
- Commit on success and roll back on DomainError (rendered by the app's handler)
- Return DTOs (not domain models)

Covers notebooks and what they own: sources, notes, embedding records and
the notebook's chat history.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_service_container
from app.domain.models.profile import Profile
from app.domain.schemas.notebook import (
    NotebookCreate,
    NotebookUpdate,
    NotebookResponse,
    NotebookListResponse,
    NoteCreate,
    NoteUpdate,
    NoteResponse,
)
from app.domain.schemas.source import SourceCreate, SourceResponse
from app.domain.schemas.embedding import (
    EmbeddingDocumentBatch,
    EmbeddingDocumentResponse,
    MatchDocumentsRequest,
    MatchDocumentResult,
    ChatMessageCreate,
    ChatHistoryEntryResponse,
)
from app.domain.errors import DomainError, NotFoundError
from app.infrastructure.container import ServiceContainer
from app.infrastructure.database.session import get_db_session

router = APIRouter()
logger = logging.getLogger(__name__)


# ============================================================================
# DEPENDENCY PROVIDERS
# ============================================================================

async def get_notebook_service(container: ServiceContainer = Depends(get_service_container)):
    """Get NotebookService from container."""
    return container.get_notebook_service()


async def get_embedding_service(container: ServiceContainer = Depends(get_service_container)):
    """Get EmbeddingService from container."""
    return container.get_embedding_service()


async def get_chat_history_service(container: ServiceContainer = Depends(get_service_container)):
    """Get ChatHistoryService from container."""
    return container.get_chat_history_service()


# ============================================================================
# NOTEBOOKS
# ============================================================================

@router.post("/", response_model=NotebookResponse, status_code=status.HTTP_201_CREATED)
async def create_notebook(
    notebook_in: NotebookCreate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a new notebook."""
    try:
        logger.info(f"Creating notebook for user: {current_user.id}")
        notebook = await service.create_notebook(
            user_id=current_user.id,
            title=notebook_in.title,
            description=notebook_in.description,
            color=notebook_in.color,
            icon=notebook_in.icon,
        )
        await db.commit()
        await db.refresh(notebook)
    except DomainError:
        await db.rollback()
        raise

    return NotebookResponse.model_validate(notebook)


@router.get("/", response_model=NotebookListResponse)
async def list_notebooks(
    skip: int = 0,
    limit: int = 100,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
):
    """List all notebooks for the current user."""
    notebooks = await service.list_user_notebooks(
        user_id=current_user.id,
        skip=skip,
        limit=limit,
    )
    total = await service.count_user_notebooks(current_user.id)
    return NotebookListResponse(
        notebooks=[NotebookResponse.model_validate(nb) for nb in notebooks],
        total=total,
    )


@router.get("/{notebook_id}", response_model=NotebookResponse)
async def get_notebook(
    notebook_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
):
    """Get notebook details by ID."""
    notebook = await service.get_notebook(notebook_id=notebook_id, user_id=current_user.id)
    return NotebookResponse.model_validate(notebook)


@router.put("/{notebook_id}", response_model=NotebookResponse)
async def update_notebook(
    notebook_id: str,
    notebook_in: NotebookUpdate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Update a notebook."""
    try:
        notebook = await service.update_notebook(
            notebook_id=notebook_id,
            user_id=current_user.id,
            **notebook_in.model_dump(exclude_unset=True),
        )
        await db.commit()
        await db.refresh(notebook)
    except DomainError:
        await db.rollback()
        raise

    return NotebookResponse.model_validate(notebook)


@router.delete("/{notebook_id}", status_code=status.HTTP_200_OK)
async def delete_notebook(
    notebook_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a notebook with its sources, notes, embedding records, chat history and files."""
    try:
        file_paths = await service.delete_notebook(notebook_id=notebook_id, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    # Objects go only after the rows are committed away
    await service.remove_stored_files(file_paths)

    logger.info(f"Notebook deleted: {notebook_id}")
    return {"message": "Notebook deleted successfully"}


# ============================================================================
# SOURCES
# ============================================================================

@router.post("/{notebook_id}/sources", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
async def add_source(
    notebook_id: str,
    source_in: SourceCreate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """
    Register a source in ``pending``.

    File-backed sources then upload their bytes through
    ``POST /sources/{id}/upload``; every source is handed to the engine
    through one of the ``/sources/process-*`` endpoints.
    """
    try:
        source = await service.add_source(
            notebook_id=notebook_id,
            user_id=current_user.id,
            source_type=source_in.type,
            title=source_in.title,
            url=source_in.url,
            content=source_in.content,
            metadata=source_in.metadata,
        )
        await db.commit()
        await db.refresh(source)
    except DomainError:
        await db.rollback()
        raise

    return SourceResponse.model_validate(source)


@router.get("/{notebook_id}/sources", response_model=List[SourceResponse])
async def list_notebook_sources(
    notebook_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
):
    """List all sources in a notebook."""
    sources = await service.get_notebook_sources(notebook_id=notebook_id, user_id=current_user.id)
    return [SourceResponse.model_validate(s) for s in sources]


# ============================================================================
# NOTES
# ============================================================================

async def _get_note_in_notebook(service, notebook_id: str, note_id: str, user_id: str):
    note = await service.get_note(note_id=note_id, user_id=user_id)
    if note.notebook_id != notebook_id:
        raise NotFoundError(f"Note {note_id} not found", resource_type="Note", resource_id=note_id)
    return note


@router.post("/{notebook_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    notebook_id: str,
    note_in: NoteCreate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a note in a notebook."""
    try:
        note = await service.create_note(
            notebook_id=notebook_id,
            user_id=current_user.id,
            title=note_in.title,
            content=note_in.content,
            source_type=note_in.source_type,
            extracted_text=note_in.extracted_text,
        )
        await db.commit()
        await db.refresh(note)
    except DomainError:
        await db.rollback()
        raise

    return NoteResponse.model_validate(note)


@router.get("/{notebook_id}/notes", response_model=List[NoteResponse])
async def list_notes(
    notebook_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
):
    """List notes in a notebook, most recently edited first."""
    notes = await service.list_notes(notebook_id=notebook_id, user_id=current_user.id)
    return [NoteResponse.model_validate(n) for n in notes]


@router.put("/{notebook_id}/notes/{note_id}", response_model=NoteResponse)
async def update_note(
    notebook_id: str,
    note_id: str,
    note_in: NoteUpdate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Update a note."""
    try:
        await _get_note_in_notebook(service, notebook_id, note_id, current_user.id)
        note = await service.update_note(
            note_id=note_id,
            user_id=current_user.id,
            **note_in.model_dump(exclude_unset=True),
        )
        await db.commit()
        await db.refresh(note)
    except DomainError:
        await db.rollback()
        raise

    return NoteResponse.model_validate(note)


@router.delete("/{notebook_id}/notes/{note_id}", status_code=status.HTTP_200_OK)
async def delete_note(
    notebook_id: str,
    note_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_notebook_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a note."""
    try:
        await _get_note_in_notebook(service, notebook_id, note_id, current_user.id)
        await service.delete_note(note_id=note_id, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return {"message": "Note deleted successfully"}


# ============================================================================
# EMBEDDING RECORDS
# ============================================================================

@router.post(
    "/{notebook_id}/documents",
    response_model=List[EmbeddingDocumentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_documents(
    notebook_id: str,
    batch: EmbeddingDocumentBatch,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_embedding_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Insert embedding records. Nothing is written unless every record validates."""
    try:
        documents = await service.add_documents(
            notebook_id=notebook_id,
            user_id=current_user.id,
            documents=[document.model_dump() for document in batch.documents],
        )
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return [EmbeddingDocumentResponse.model_validate(d) for d in documents]


@router.post("/{notebook_id}/documents/match", response_model=List[MatchDocumentResult])
async def match_documents(
    notebook_id: str,
    request: MatchDocumentsRequest,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_embedding_service),
):
    """Nearest embedding records in the notebook, most similar first."""
    matches = await service.match_documents(
        notebook_id=notebook_id,
        user_id=current_user.id,
        query_embedding=request.query_embedding,
        match_count=request.match_count,
        metadata_filter=request.filter,
    )
    return [MatchDocumentResult(**match) for match in matches]


@router.get("/{notebook_id}/documents/{document_id}", response_model=EmbeddingDocumentResponse)
async def get_document(
    notebook_id: str,
    document_id: int,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_embedding_service),
):
    """Get one embedding record."""
    document = await service.get_document(document_id=document_id, user_id=current_user.id)
    if document.notebook_id != notebook_id:
        raise NotFoundError(
            f"Embedding record {document_id} not found",
            resource_type="EmbeddingDocument",
            resource_id=document_id,
        )
    return EmbeddingDocumentResponse.model_validate(document)


@router.delete("/{notebook_id}/documents/{document_id}", status_code=status.HTTP_200_OK)
async def delete_document(
    notebook_id: str,
    document_id: int,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_embedding_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete one embedding record."""
    try:
        document = await service.get_document(document_id=document_id, user_id=current_user.id)
        if document.notebook_id != notebook_id:
            raise NotFoundError(
                f"Embedding record {document_id} not found",
                resource_type="EmbeddingDocument",
                resource_id=document_id,
            )
        await service.delete_document(document_id=document_id, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return {"message": "Embedding record deleted successfully"}


# ============================================================================
# CHAT HISTORY
# ============================================================================

@router.get("/{notebook_id}/chat-history", response_model=List[ChatHistoryEntryResponse])
async def list_chat_history(
    notebook_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_chat_history_service),
):
    """Messages of the notebook's chat session, oldest first."""
    entries = await service.list_messages(notebook_id=notebook_id, user_id=current_user.id)
    return [ChatHistoryEntryResponse.model_validate(e) for e in entries]


@router.post(
    "/{notebook_id}/chat-history",
    response_model=ChatHistoryEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def append_chat_message(
    notebook_id: str,
    message_in: ChatMessageCreate,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_chat_history_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Append a message to the notebook's chat session."""
    try:
        entry = await service.append_message(
            notebook_id=notebook_id,
            user_id=current_user.id,
            message=message_in.message,
        )
        await db.commit()
        await db.refresh(entry)
    except DomainError:
        await db.rollback()
        raise

    return ChatHistoryEntryResponse.model_validate(entry)


@router.delete("/{notebook_id}/chat-history", status_code=status.HTTP_200_OK)
async def clear_chat_history(
    notebook_id: str,
    current_user: Profile = Depends(get_current_user),
    service=Depends(get_chat_history_service),
    db: AsyncSession = Depends(get_db_session),
):
    """Clear the notebook's chat session."""
    try:
        removed = await service.clear_history(notebook_id=notebook_id, user_id=current_user.id)
        await db.commit()
    except DomainError:
        await db.rollback()
        raise

    return {"message": "Chat history cleared", "deleted": removed}
