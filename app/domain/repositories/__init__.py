"""Domain repositories for data access."""

from .profile_repository import ProfileRepository
from .notebook_repository import NotebookRepository, SourceRepository, NoteRepository
from .embedding_repository import EmbeddingRepository
from .chat_history_repository import ChatHistoryRepository

__all__ = [
    "ProfileRepository",
    "NotebookRepository",
    "SourceRepository",
    "NoteRepository",
    "EmbeddingRepository",
    "ChatHistoryRepository",
]
