"""
Note Model

Core entity: a short, user-owned text memo. The note table is the source
of truth; its embedding lives in the separate ``note_vectors`` index.
"""

import uuid

from sqlalchemy import Boolean, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mindnotes.models.base import Base, TimestampMixin


class Note(Base, TimestampMixin):
    """
    Note entity.

    Attributes:
        id: Opaque UUID assigned on creation, stable for the note's lifetime.
        owner_id: Identity of the authenticated creator (immutable).
        content: Non-empty note text.
        pinned: Pin flag, defaults to False.
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Note(id={self.id!s:.8}, owner='{self.owner_id}', content='{self.content[:20]}...')>"
