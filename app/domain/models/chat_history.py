from datetime import datetime
from sqlalchemy import DateTime, Integer
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import mapped_column, Mapped
from sqlalchemy.sql import func

from app.infrastructure.database.session import Base
from app.infrastructure.database.types import JSONDocument


class ChatHistoryEntry(Base):
    """One message of a notebook's chat session.

    Chat sessions map one-to-one onto notebooks: ``session_id`` holds the
    notebook id.
    """

    __tablename__ = "chat_histories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(PG_UUID(as_uuid=False), nullable=False, index=True)
    message: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
