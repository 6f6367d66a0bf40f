"""ORM models. Importing this package registers every table with Base.metadata."""

from app.infrastructure.database.session import Base
from app.domain.models.profile import Profile
from app.domain.models.notebook import Notebook
from app.domain.models.source import Source
from app.domain.models.note import Note
from app.domain.models.embedding import EmbeddingDocument
from app.domain.models.chat_history import ChatHistoryEntry

__all__ = [
    "Base",
    "Profile",
    "Notebook",
    "Source",
    "Note",
    "EmbeddingDocument",
    "ChatHistoryEntry",
]
