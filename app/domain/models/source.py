from datetime import datetime
from typing import TYPE_CHECKING, Optional
import uuid
from sqlalchemy import String, DateTime, Text, ForeignKey, BigInteger, Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import mapped_column, Mapped, relationship
from sqlalchemy.sql import func

from app.domain.source_state import SourceStatus, SourceType
from app.infrastructure.database.session import Base
from app.infrastructure.database.types import JSONDocument

if TYPE_CHECKING:
    from app.domain.models.notebook import Notebook


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Source(Base):
    __tablename__ = "sources"

    id: Mapped[str] = mapped_column(PG_UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    notebook_id: Mapped[str] = mapped_column(PG_UUID(as_uuid=False), ForeignKey("notebooks.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[SourceType] = mapped_column(
        SAEnum(SourceType, name="source_type", values_callable=_enum_values),
        nullable=False,
    )
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_status: Mapped[SourceStatus] = mapped_column(
        SAEnum(
            SourceStatus,
            name="source_processing_status",
            values_callable=_enum_values,
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        nullable=False,
        default=SourceStatus.PENDING,
        index=True,
    )
    metadata_: Mapped[dict] = mapped_column("metadata", JSONDocument, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    notebook: Mapped["Notebook"] = relationship("Notebook", back_populates="sources")
