"""Pydantic schemas for notebook and note API requests and responses."""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.domain.source_state import NoteAuthor


class NotebookCreate(BaseModel):
    """Schema for creating a notebook."""
    title: str = Field("Untitled Notebook", min_length=1, max_length=500, description="Notebook title")
    description: Optional[str] = Field(None, description="Notebook description")
    color: str = Field("gray", max_length=50)
    icon: str = Field("📝", max_length=50)


class NotebookUpdate(BaseModel):
    """Schema for updating a notebook."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=50)
    icon: Optional[str] = Field(None, max_length=50)
    example_questions: Optional[List[str]] = None


class NotebookResponse(BaseModel):
    """Schema for notebook response."""
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    color: str
    icon: str
    generation_status: Optional[str] = None
    audio_overview_generation_status: Optional[str] = None
    audio_overview_url: Optional[str] = None
    audio_url_expires_at: Optional[datetime] = None
    example_questions: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotebookListResponse(BaseModel):
    """Schema for notebook list response."""
    notebooks: list[NotebookResponse]
    total: int


class NoteCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str
    source_type: NoteAuthor = NoteAuthor.USER
    extracted_text: Optional[str] = None


class NoteUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = None
    extracted_text: Optional[str] = None


class NoteResponse(BaseModel):
    id: str
    notebook_id: str
    title: str
    content: str
    source_type: str
    extracted_text: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
