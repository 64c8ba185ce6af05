"""
Note Vector Model

Storage for the vector index: one embedding per note, tagged with the
owner. No foreign key to ``notes``: vectors are written after the note
and may outlive it (dangling) until a re-sync prunes them.
"""

import uuid
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mindnotes.core.config import settings
from mindnotes.models.base import Base, utcnow


class NoteVector(Base):
    """
    Attributes:
        id: Same value as ``Note.id``.
        owner_id: Owner metadata used by the similarity-search filter.
        embedding: Dense vector of ``EMBEDDING_DIMENSION`` floats.
        indexed_at: Time of the last upsert.
    """

    __tablename__ = "note_vectors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.EMBEDDING_DIMENSION), nullable=False
    )
    indexed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<NoteVector(id={self.id!s:.8}, owner='{self.owner_id}')>"
