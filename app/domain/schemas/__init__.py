"""Domain schemas for API request/response validation."""

from .notebook import (
    NotebookCreate,
    NotebookUpdate,
    NotebookResponse,
    NotebookListResponse,
    NoteCreate,
    NoteUpdate,
    NoteResponse,
)
from .source import (
    SourceCreate,
    SourceUpdate,
    SourceResponse,
    ProcessDocumentRequest,
    AdditionalSourcesRequest,
    SourceCallbackPayload,
    AudioOverviewCallbackPayload,
    CallbackResponse,
    DispatchResponse,
)
from .embedding import (
    EmbeddingDocumentCreate,
    EmbeddingDocumentBatch,
    EmbeddingDocumentResponse,
    MatchDocumentsRequest,
    MatchDocumentResult,
    ChatMessageCreate,
    ChatHistoryEntryResponse,
)

__all__ = [
    # Notebook schemas
    "NotebookCreate",
    "NotebookUpdate",
    "NotebookResponse",
    "NotebookListResponse",
    "NoteCreate",
    "NoteUpdate",
    "NoteResponse",
    # Source schemas
    "SourceCreate",
    "SourceUpdate",
    "SourceResponse",
    "ProcessDocumentRequest",
    "AdditionalSourcesRequest",
    "SourceCallbackPayload",
    "AudioOverviewCallbackPayload",
    "CallbackResponse",
    "DispatchResponse",
    # Embedding and chat schemas
    "EmbeddingDocumentCreate",
    "EmbeddingDocumentBatch",
    "EmbeddingDocumentResponse",
    "MatchDocumentsRequest",
    "MatchDocumentResult",
    "ChatMessageCreate",
    "ChatHistoryEntryResponse",
]
