"""Repositories package."""

from mindnotes.repositories.notes import NoteRepository, note_repository
from mindnotes.repositories.vectors import (
    OwnerFilter,
    PgVectorIndex,
    VectorIndex,
    VectorMatch,
    VectorMetadata,
    vector_index,
)

__all__ = [
    "NoteRepository",
    "note_repository",
    "OwnerFilter",
    "PgVectorIndex",
    "VectorIndex",
    "VectorMatch",
    "VectorMetadata",
    "vector_index",
]
