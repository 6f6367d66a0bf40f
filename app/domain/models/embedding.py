from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, Text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import mapped_column, Mapped
from sqlalchemy.sql import func
from pgvector.sqlalchemy import Vector

from app.core.config import settings
from app.infrastructure.database.session import Base
from app.infrastructure.database.types import JSONDocument, BigIntegerPK


class EmbeddingDocument(Base):
    """A chunk of source text with its embedding, written by the workflow engine.

    ``notebook_id`` is a real column so ownership checks never depend on the
    free-form metadata; the metadata keeps ``notebook_id`` and ``source_id``
    as well for the engine's own filtering.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    notebook_id: Mapped[str] = mapped_column(PG_UUID(as_uuid=False), ForeignKey("notebooks.id", ondelete="CASCADE"), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSONDocument, default=dict)
    embedding: Mapped[Optional[list[float]]] = mapped_column(Vector(settings.EMBEDDING_DIMENSION), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
