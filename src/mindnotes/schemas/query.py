"""
Query Schemas

Pydantic models for the conversational query endpoint and the enriched
results the pipeline produces.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class QueryRequest(BaseModel):
    """Request body for POST /query."""

    q: str = Field(
        ...,
        max_length=2000,
        description="Free-form question about your notes",
    )


class EnrichedResult(BaseModel):
    """A hydrated note joined with its similarity score."""

    id: UUID
    owner_id: str
    content: str
    pinned: bool
    created_at: datetime
    updated_at: datetime
    score: float = Field(default=0.0, description="Similarity score (higher = more relevant)")

    model_config = ConfigDict(from_attributes=True)


class QueryResponse(BaseModel):
    """Conversational answer plus the notes it was grounded on."""

    query: str = Field(description="Original query for reference")
    answer: str = Field(description="Generated answer text")
    sources: list[EnrichedResult] = Field(
        default_factory=list,
        description="Supporting notes, highest score first",
    )


class QueryErrorResponse(BaseModel):
    """Body returned when the pipeline aborts."""

    detail: str
    stage: str
    kind: str
