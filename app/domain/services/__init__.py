"""Domain services for business logic."""

from .notebook_service import NotebookService
from .source_dispatch_service import SourceDispatchService
from .source_callback_service import SourceCallbackService
from .stale_source_service import StaleSourceService
from .embedding_service import EmbeddingService
from .chat_history_service import ChatHistoryService

__all__ = [
    "NotebookService",
    "SourceDispatchService",
    "SourceCallbackService",
    "StaleSourceService",
    "EmbeddingService",
    "ChatHistoryService",
]
