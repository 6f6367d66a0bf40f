"""Notebook repository for managing notebooks, sources and notes."""

import logging
from typing import Optional, List, Iterable
from datetime import datetime, timezone
from sqlalchemy import select, update, delete, desc, func, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import is_valid_uuid
from app.domain.models.notebook import Notebook
from app.domain.models.source import Source
from app.domain.models.note import Note
from app.domain.source_state import SourceStatus, SourceType, is_terminal
from app.domain.errors import NotFoundError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotebookRepository:
    """Repository for Notebook entity operations."""

    # Columns a client may change directly
    UPDATABLE_FIELDS = frozenset({"title", "description", "color", "icon", "example_questions"})

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: str,
        title: str = "Untitled Notebook",
        description: Optional[str] = None,
        color: str = "gray",
        icon: str = "📝",
    ) -> Notebook:
        """Create a new notebook."""
        notebook = Notebook(
            user_id=user_id,
            title=title,
            description=description,
            color=color,
            icon=icon,
            example_questions=[],
        )
        self.db.add(notebook)
        await self.db.flush()
        return notebook

    async def get_by_id(self, notebook_id: str) -> Optional[Notebook]:
        if not is_valid_uuid(notebook_id):
            return None
        result = await self.db.execute(select(Notebook).where(Notebook.id == notebook_id))
        return result.scalar_one_or_none()

    async def get_by_id_and_owner(self, notebook_id: str, user_id: str) -> Optional[Notebook]:
        """Get notebook by ID checking owner."""
        if not is_valid_uuid(notebook_id):
            return None
        result = await self.db.execute(
            select(Notebook).where(and_(Notebook.id == notebook_id, Notebook.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def is_owner(self, notebook_id: str, user_id: str) -> bool:
        """True when ``user_id`` owns ``notebook_id``."""
        if not is_valid_uuid(notebook_id):
            return False
        result = await self.db.execute(
            select(func.count())
            .select_from(Notebook)
            .where(and_(Notebook.id == notebook_id, Notebook.user_id == user_id))
        )
        return result.scalar_one() > 0

    async def list_by_owner(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Notebook]:
        """List notebooks by owner with pagination, newest first."""
        result = await self.db.execute(
            select(Notebook)
            .where(Notebook.user_id == user_id)
            .order_by(desc(Notebook.created_at))
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_owner(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Notebook).where(Notebook.user_id == user_id)
        )
        return result.scalar_one()

    async def update(self, notebook_id: str, **updates) -> Notebook:
        notebook = await self.get_by_id(notebook_id)
        if not notebook:
            raise NotFoundError(f"Notebook {notebook_id} not found", resource_type="Notebook", resource_id=notebook_id)

        for key, value in updates.items():
            if key in self.UPDATABLE_FIELDS:
                setattr(notebook, key, value)
        notebook.updated_at = _utcnow()

        await self.db.flush()
        return notebook

    async def update_audio_overview(
        self,
        notebook_id: str,
        status: str,
        audio_url: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Optional[Notebook]:
        """Record the outcome of an audio overview job in a single UPDATE."""
        values = {
            "audio_overview_generation_status": status,
            "updated_at": _utcnow(),
        }
        if audio_url:
            values["audio_overview_url"] = audio_url
            values["audio_url_expires_at"] = expires_at
        result = await self.db.execute(
            update(Notebook)
            .where(Notebook.id == notebook_id)
            .values(**values)
            .returning(Notebook)
            .execution_options(synchronize_session="fetch")
        )
        return result.scalar_one_or_none()

    async def delete(self, notebook_id: str) -> bool:
        """Delete notebook; sources, notes and embeddings go with it (ON DELETE CASCADE)."""
        result = await self.db.execute(delete(Notebook).where(Notebook.id == notebook_id))
        await self.db.flush()
        return result.rowcount > 0


class SourceRepository:
    """Repository for Source entity operations.

    Status changes go through :meth:`transition`, a single conditional
    UPDATE guarded on the current status, so a concurrent writer can never
    slip between the check and the write.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        notebook_id: str,
        source_type: SourceType,
        title: str,
        url: Optional[str] = None,
        content: Optional[str] = None,
        file_path: Optional[str] = None,
        file_size: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> Source:
        """Create a new source in ``pending``."""
        source = Source(
            notebook_id=notebook_id,
            type=source_type,
            title=title,
            url=url,
            content=content,
            file_path=file_path,
            file_size=file_size,
            metadata_=metadata or {},
            processing_status=SourceStatus.PENDING,
        )
        self.db.add(source)
        await self.db.flush()
        return source

    async def get_by_id(self, source_id: str) -> Optional[Source]:
        """Get source by ID; sources whose notebook is gone are invisible."""
        if not is_valid_uuid(source_id):
            return None
        result = await self.db.execute(
            select(Source)
            .join(Notebook, Notebook.id == Source.notebook_id)
            .where(Source.id == source_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id_and_owner(self, source_id: str, user_id: str) -> Optional[Source]:
        if not is_valid_uuid(source_id):
            return None
        result = await self.db.execute(
            select(Source)
            .join(Notebook, Notebook.id == Source.notebook_id)
            .where(and_(Source.id == source_id, Notebook.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def list_by_notebook(self, notebook_id: str) -> List[Source]:
        """List all sources in a notebook, newest first."""
        result = await self.db.execute(
            select(Source)
            .where(Source.notebook_id == notebook_id)
            .order_by(desc(Source.created_at))
        )
        return list(result.scalars().all())

    async def list_by_ids(self, notebook_id: str, source_ids: Iterable[str]) -> List[Source]:
        source_ids = [source_id for source_id in source_ids if is_valid_uuid(source_id)]
        result = await self.db.execute(
            select(Source).where(
                and_(Source.notebook_id == notebook_id, Source.id.in_(source_ids))
            )
        )
        return list(result.scalars().all())

    async def update(self, source_id: str, **updates) -> Source:
        """Update descriptive fields. Status is never changed here."""
        source = await self.get_by_id(source_id)
        if not source:
            raise NotFoundError(f"Source {source_id} not found", resource_type="Source", resource_id=source_id)

        for key, value in updates.items():
            if hasattr(source, key) and key not in ("id", "notebook_id", "processing_status"):
                setattr(source, key, value)
        source.updated_at = _utcnow()

        await self.db.flush()
        return source

    async def transition(
        self,
        source_id: str,
        target: SourceStatus,
        allowed_from: Iterable[SourceStatus],
        **fields,
    ) -> Optional[Source]:
        """Move a source to ``target`` if its current status is in ``allowed_from``.

        Other column values in ``fields`` are written in the same statement.
        Returns the updated source, or None when nothing matched (unknown
        id, notebook deleted, or status outside ``allowed_from``).

        Re-entering the terminal status a row already has keeps its
        ``updated_at``, so a replayed result leaves the row unchanged.
        """
        values = dict(fields)
        values["processing_status"] = target
        if is_terminal(target):
            values["updated_at"] = case(
                (Source.processing_status == target, Source.updated_at),
                else_=_utcnow(),
            )
        else:
            values["updated_at"] = _utcnow()

        notebook_exists = select(Notebook.id).where(Notebook.id == Source.notebook_id).exists()
        result = await self.db.execute(
            update(Source)
            .where(
                Source.id == source_id,
                Source.processing_status.in_(list(allowed_from)),
                notebook_exists,
            )
            .values(**values)
            .returning(Source)
            .execution_options(synchronize_session="fetch")
        )
        return result.scalar_one_or_none()

    async def transition_many(
        self,
        notebook_id: str,
        source_ids: Iterable[str],
        target: SourceStatus,
        allowed_from: Iterable[SourceStatus],
    ) -> List[Source]:
        """Move several sources of one notebook to ``target`` in a single UPDATE.

        Only rows currently in ``allowed_from`` change; callers compare the
        returned count with the requested ids to detect partial matches.
        """
        notebook_exists = select(Notebook.id).where(Notebook.id == Source.notebook_id).exists()
        result = await self.db.execute(
            update(Source)
            .where(
                Source.notebook_id == notebook_id,
                Source.id.in_(list(source_ids)),
                Source.processing_status.in_(list(allowed_from)),
                notebook_exists,
            )
            .values(processing_status=target, updated_at=_utcnow())
            .returning(Source)
            .execution_options(synchronize_session="fetch")
        )
        return list(result.scalars().all())

    async def fail_stale(self, cutoff: datetime) -> List[Source]:
        """Fail every ``processing`` source not touched since ``cutoff``."""
        result = await self.db.execute(
            update(Source)
            .where(
                Source.processing_status == SourceStatus.PROCESSING,
                Source.updated_at < cutoff,
            )
            .values(processing_status=SourceStatus.FAILED, updated_at=_utcnow())
            .returning(Source)
            .execution_options(synchronize_session="fetch")
        )
        return list(result.scalars().all())

    async def delete(self, source_id: str) -> bool:
        result = await self.db.execute(delete(Source).where(Source.id == source_id))
        await self.db.flush()
        return result.rowcount > 0


class NoteRepository:
    """Repository for Note entity operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        notebook_id: str,
        title: str,
        content: str,
        source_type: str,
        extracted_text: Optional[str] = None,
    ) -> Note:
        note = Note(
            notebook_id=notebook_id,
            title=title,
            content=content,
            source_type=source_type,
            extracted_text=extracted_text,
        )
        self.db.add(note)
        await self.db.flush()
        return note

    async def get_by_id_and_owner(self, note_id: str, user_id: str) -> Optional[Note]:
        if not is_valid_uuid(note_id):
            return None
        result = await self.db.execute(
            select(Note)
            .join(Notebook, Notebook.id == Note.notebook_id)
            .where(and_(Note.id == note_id, Notebook.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def list_by_notebook(self, notebook_id: str) -> List[Note]:
        result = await self.db.execute(
            select(Note)
            .where(Note.notebook_id == notebook_id)
            .order_by(desc(Note.updated_at))
        )
        return list(result.scalars().all())

    async def update(self, note: Note, **updates) -> Note:
        for key, value in updates.items():
            if key in ("title", "content", "extracted_text"):
                setattr(note, key, value)
        note.updated_at = _utcnow()
        await self.db.flush()
        return note

    async def delete(self, note_id: str) -> bool:
        result = await self.db.execute(delete(Note).where(Note.id == note_id))
        await self.db.flush()
        return result.rowcount > 0
