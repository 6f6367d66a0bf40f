"""Pydantic schemas for embedding records, similarity search and chat history."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class EmbeddingDocumentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    embedding: List[float]


class EmbeddingDocumentBatch(BaseModel):
    documents: List[EmbeddingDocumentCreate] = Field(..., min_length=1)


class EmbeddingDocumentResponse(BaseModel):
    id: int
    notebook_id: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchDocumentsRequest(BaseModel):
    query_embedding: List[float]
    match_count: Optional[int] = Field(None, ge=1)
    filter: Dict[str, Any] = Field(default_factory=dict)


class MatchDocumentResult(BaseModel):
    id: int
    content: str
    metadata: Dict[str, Any]
    similarity: float


class ChatMessageCreate(BaseModel):
    message: Dict[str, Any]


class ChatHistoryEntryResponse(BaseModel):
    id: int
    session_id: str
    message: Dict[str, Any]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
