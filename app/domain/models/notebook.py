from datetime import datetime
from typing import TYPE_CHECKING, Optional
import uuid
from sqlalchemy import String, DateTime, Text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import mapped_column, Mapped, relationship
from sqlalchemy.sql import func

from app.infrastructure.database.session import Base
from app.infrastructure.database.types import JSONDocument

if TYPE_CHECKING:
    from app.domain.models.profile import Profile
    from app.domain.models.source import Source
    from app.domain.models.note import Note


class Notebook(Base):
    __tablename__ = "notebooks"

    id: Mapped[str] = mapped_column(PG_UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(PG_UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="Untitled Notebook")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(50), default="gray")
    icon: Mapped[str] = mapped_column(String(50), default="📝")
    generation_status: Mapped[str] = mapped_column(String(50), default="completed")
    audio_overview_generation_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    audio_overview_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audio_url_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    example_questions: Mapped[list] = mapped_column(JSONDocument, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships (children are removed by ON DELETE CASCADE)
    owner: Mapped["Profile"] = relationship("Profile", back_populates="notebooks")
    sources: Mapped[list["Source"]] = relationship("Source", back_populates="notebook", passive_deletes=True)
    notes: Mapped[list["Note"]] = relationship("Note", back_populates="notebook", passive_deletes=True)
