"""Pydantic schemas for sources, dispatch requests and workflow callbacks."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.domain.source_state import SourceStatus, SourceType


class SourceCreate(BaseModel):
    """Schema for registering a source in a notebook."""
    type: SourceType
    title: str = Field(..., min_length=1)
    url: Optional[str] = None
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SourceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    display_name: Optional[str] = None


class SourceResponse(BaseModel):
    """Schema for source response."""
    id: str
    notebook_id: str
    title: str
    type: SourceType
    url: Optional[str] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    display_name: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    processing_status: SourceStatus
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProcessDocumentRequest(BaseModel):
    """Hand an uploaded file-backed source to the document workflow."""
    source_id: str = Field(..., alias="sourceId")
    file_path: str = Field(..., alias="filePath", min_length=1)
    source_type: str = Field(..., alias="sourceType")

    class Config:
        populate_by_name = True


class AdditionalSourcesRequest(BaseModel):
    """Hand a batch of website or copied-text sources to the additional sources workflow."""
    type: Literal["multiple-websites", "copied-text"]
    notebook_id: str = Field(..., alias="notebookId")
    source_ids: List[str] = Field(..., alias="sourceIds", min_length=1)
    urls: Optional[List[str]] = None
    content: Optional[str] = None
    title: Optional[str] = None

    class Config:
        populate_by_name = True

    @field_validator("source_ids")
    @classmethod
    def unique_source_ids(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("sourceIds must not contain duplicates")
        return v


class SourceCallbackPayload(BaseModel):
    """Result report posted by the workflow engine. Every field is optional on the wire."""
    source_id: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    display_name: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    error: Optional[Any] = None


class AudioOverviewCallbackPayload(BaseModel):
    notebook_id: Optional[str] = None
    audio_url: Optional[str] = None
    status: Optional[str] = None
    error: Optional[Any] = None
    expires_at: Optional[datetime] = None


class CallbackResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None


class DispatchResponse(BaseModel):
    success: bool
    message: str
    sources: List[SourceResponse]
