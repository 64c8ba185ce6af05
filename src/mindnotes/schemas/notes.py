"""
Note Schemas

Pydantic models for Note API request/response validation.
Separates concerns: NoteCreate (input), NoteUpdate (partial), NoteRead (output).
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _non_blank(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("Note content cannot be empty")
    return stripped


# Trimmed, non-empty note text
NoteContent = Annotated[str, Field(max_length=10_000), AfterValidator(_non_blank)]


class NoteCreate(BaseModel):
    """Request schema for POST /notes."""

    content: NoteContent


class NoteUpdate(BaseModel):
    """
    Request schema for PATCH /notes/{id}.

    All fields optional to support partial updates.
    """

    content: NoteContent | None = None
    pinned: bool | None = None


class PinUpdate(BaseModel):
    """Request schema for PATCH /notes/{id}/pin."""

    pinned: bool


class NoteRead(BaseModel):
    """Full Note representation."""

    id: UUID
    owner_id: str
    content: str
    pinned: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # Enables ORM model conversion


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool


class NoteList(BaseModel):
    """Response schema for GET /notes."""

    notes: list[NoteRead]
    pagination: Pagination


class ReindexResponse(BaseModel):
    """Outcome of re-embedding every note of the caller."""

    indexed: int = Field(description="Notes embedded and upserted")
    degraded: int = Field(description="Notes whose embedding or upsert failed")
    pruned: int = Field(description="Dangling vectors removed")
