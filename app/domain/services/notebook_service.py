"""Notebook service for managing notebooks, their sources and notes."""

import logging
from typing import Optional, List

from app.domain.models.notebook import Notebook
from app.domain.models.source import Source
from app.domain.models.note import Note
from app.domain.repositories.notebook_repository import (
    NotebookRepository,
    SourceRepository,
    NoteRepository,
)
from app.domain.repositories.embedding_repository import EmbeddingRepository
from app.domain.repositories.chat_history_repository import ChatHistoryRepository
from app.domain.services.chat_history_service import session_id_for_notebook
from app.domain.source_state import SourceType, NoteAuthor
from app.domain.interfaces import IStorageProvider
from app.domain.errors import NotFoundError, ValidationError, BusinessRuleViolationError
from app.infrastructure.monitoring.logging_setup import log_error

logger = logging.getLogger(__name__)


class NotebookService:
    """
    Notebook service managing notebook lifecycle and owned resources.

    Responsibilities:
    - Create/read/update/delete notebooks
    - Register, rename and delete sources
    - Manage notes
    - Ownership checks (failures surface as NotFoundError)
    - Cleanup of stored files and chat history on delete
    """

    def __init__(
        self,
        notebook_repo: NotebookRepository,
        source_repo: SourceRepository,
        note_repo: NoteRepository,
        embedding_repo: EmbeddingRepository,
        chat_history_repo: ChatHistoryRepository,
        storage_provider: IStorageProvider,
        max_notebooks_per_user: int = 100,
    ):
        self.notebook_repo = notebook_repo
        self.source_repo = source_repo
        self.note_repo = note_repo
        self.embedding_repo = embedding_repo
        self.chat_history_repo = chat_history_repo
        self.storage_provider = storage_provider
        self.max_notebooks_per_user = max_notebooks_per_user

    # ========================================================================
    # NOTEBOOKS
    # ========================================================================

    async def create_notebook(
        self,
        user_id: str,
        title: str = "Untitled Notebook",
        description: Optional[str] = None,
        color: str = "gray",
        icon: str = "📝",
    ) -> Notebook:
        """
        Create a new notebook.

        Raises:
            BusinessRuleViolationError: user has reached the notebook limit
        """
        if await self.notebook_repo.count_by_owner(user_id) >= self.max_notebooks_per_user:
            raise BusinessRuleViolationError(
                f"Notebook limit ({self.max_notebooks_per_user}) reached for user"
            )

        notebook = await self.notebook_repo.create(
            user_id=user_id,
            title=title,
            description=description,
            color=color,
            icon=icon,
        )

        logger.info(f"Notebook created: {notebook.id} by user: {user_id}")
        return notebook

    async def get_notebook(self, notebook_id: str, user_id: str) -> Notebook:
        """
        Get notebook with ownership check.

        Raises:
            NotFoundError: notebook not found or user not owner
        """
        notebook = await self.notebook_repo.get_by_id_and_owner(notebook_id, user_id)
        if not notebook:
            raise NotFoundError(
                f"Notebook {notebook_id} not found or user not authorized",
                resource_type="Notebook",
                resource_id=notebook_id,
            )
        return notebook

    async def is_notebook_owner(self, notebook_id: str, user_id: str) -> bool:
        return await self.notebook_repo.is_owner(notebook_id, user_id)

    async def list_user_notebooks(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Notebook]:
        return await self.notebook_repo.list_by_owner(user_id, skip=skip, limit=limit)

    async def count_user_notebooks(self, user_id: str) -> int:
        return await self.notebook_repo.count_by_owner(user_id)

    async def update_notebook(self, notebook_id: str, user_id: str, **updates) -> Notebook:
        """Update notebook with ownership check. Unknown fields are ignored."""
        notebook = await self.get_notebook(notebook_id, user_id)

        filtered_updates = {k: v for k, v in updates.items() if v is not None}
        if filtered_updates:
            notebook = await self.notebook_repo.update(notebook_id, **filtered_updates)
            logger.info(f"Notebook updated: {notebook_id}")

        return notebook

    async def delete_notebook(self, notebook_id: str, user_id: str) -> List[str]:
        """
        Delete a notebook with everything it owns.

        Sources, notes and embedding records go with the row (cascade); chat
        history is removed here. Returns the stored file paths of its
        sources; pass them to ``remove_stored_files`` once the transaction
        has committed.
        """
        await self.get_notebook(notebook_id, user_id)

        sources = await self.source_repo.list_by_notebook(notebook_id)
        file_paths = [source.file_path for source in sources if source.file_path]

        cleared = await self.chat_history_repo.delete_by_session(session_id_for_notebook(notebook_id))
        await self.notebook_repo.delete(notebook_id)

        logger.info(
            f"Notebook deleted: {notebook_id}",
            extra={"sources": len(sources), "files": len(file_paths), "chat_messages": cleared},
        )
        return file_paths

    # ========================================================================
    # SOURCES
    # ========================================================================

    async def add_source(
        self,
        notebook_id: str,
        user_id: str,
        source_type: SourceType,
        title: str,
        url: Optional[str] = None,
        content: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Source:
        """
        Register a source in ``pending``.

        URL sources need a url; nothing else is required up front since
        file-backed sources receive their bytes through the upload endpoint.
        """
        await self.get_notebook(notebook_id, user_id)

        source_type = SourceType(source_type)
        if source_type in (SourceType.WEBSITE, SourceType.YOUTUBE) and not url:
            raise ValidationError(f"A url is required for {source_type.value} sources")

        source = await self.source_repo.create(
            notebook_id=notebook_id,
            source_type=source_type,
            title=title,
            url=url,
            content=content,
            metadata=metadata,
        )
        logger.info(f"Source added: {source.id} ({source_type.value}) to notebook: {notebook_id}")
        return source

    async def get_source(self, source_id: str, user_id: str) -> Source:
        source = await self.source_repo.get_by_id_and_owner(source_id, user_id)
        if not source:
            raise NotFoundError(
                f"Source {source_id} not found or user not authorized",
                resource_type="Source",
                resource_id=source_id,
            )
        return source

    async def get_notebook_sources(self, notebook_id: str, user_id: str) -> List[Source]:
        await self.get_notebook(notebook_id, user_id)
        return await self.source_repo.list_by_notebook(notebook_id)

    async def update_source(self, source_id: str, user_id: str, **updates) -> Source:
        """Rename a source. Processing fields belong to the pipeline and cannot be set here."""
        await self.get_source(source_id, user_id)
        allowed = {k: v for k, v in updates.items() if k in ("title", "display_name") and v is not None}
        return await self.source_repo.update(source_id, **allowed)

    async def delete_source(self, source_id: str, user_id: str) -> List[str]:
        """Delete a source and its embedding records.

        Returns the stored file path (if any) for ``remove_stored_files``.
        """
        source = await self.get_source(source_id, user_id)
        file_paths = [source.file_path] if source.file_path else []

        removed_embeddings = await self.embedding_repo.delete_by_source(source.notebook_id, source_id)
        await self.source_repo.delete(source_id)

        logger.info(f"Source deleted: {source_id}", extra={"embedding_records": removed_embeddings})
        return file_paths

    async def remove_stored_files(self, file_paths: List[str]) -> int:
        """Delete stored objects whose rows are already committed away.

        Failures are logged and skipped. Returns how many objects were removed.
        """
        removed = 0
        for file_path in file_paths:
            # A leftover object is only logged for cleanup
            try:
                await self.storage_provider.delete(file_path)
                removed += 1
            except Exception as e:
                log_error(logger, e, context="stored_file_cleanup", extra_data={"file_path": file_path})
        return removed

    # ========================================================================
    # NOTES
    # ========================================================================

    async def create_note(
        self,
        notebook_id: str,
        user_id: str,
        title: str,
        content: str,
        source_type: NoteAuthor = NoteAuthor.USER,
        extracted_text: Optional[str] = None,
    ) -> Note:
        await self.get_notebook(notebook_id, user_id)
        note = await self.note_repo.create(
            notebook_id=notebook_id,
            title=title,
            content=content,
            source_type=NoteAuthor(source_type).value,
            extracted_text=extracted_text,
        )
        logger.info(f"Note created: {note.id} in notebook: {notebook_id}")
        return note

    async def list_notes(self, notebook_id: str, user_id: str) -> List[Note]:
        await self.get_notebook(notebook_id, user_id)
        return await self.note_repo.list_by_notebook(notebook_id)

    async def get_note(self, note_id: str, user_id: str) -> Note:
        note = await self.note_repo.get_by_id_and_owner(note_id, user_id)
        if not note:
            raise NotFoundError(
                f"Note {note_id} not found or user not authorized",
                resource_type="Note",
                resource_id=note_id,
            )
        return note

    async def update_note(self, note_id: str, user_id: str, **updates) -> Note:
        note = await self.get_note(note_id, user_id)
        return await self.note_repo.update(note, **{k: v for k, v in updates.items() if v is not None})

    async def delete_note(self, note_id: str, user_id: str) -> bool:
        await self.get_note(note_id, user_id)
        return await self.note_repo.delete(note_id)
