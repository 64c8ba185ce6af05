"""Models package - re-exports all models for convenient imports."""

from mindnotes.models.base import Base, TimestampMixin
from mindnotes.models.note import Note
from mindnotes.models.vector import NoteVector

__all__ = [
    "Base",
    "TimestampMixin",
    "Note",
    "NoteVector",
]
