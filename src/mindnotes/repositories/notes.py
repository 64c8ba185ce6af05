"""
Note Repository

Data access layer for Note entities. Every read and write is scoped to an
owner: there is no method that can return another user's note.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mindnotes.core.errors import DocumentStoreError
from mindnotes.models import Note
from mindnotes.models.base import utcnow

logger = logging.getLogger(__name__)


class NoteRepository:
    """
    Repository for Note entities.

    All methods expect an externally managed ``AsyncSession`` (injected via
    FastAPI dependency or created by a background task).

    Usage::

        repo = NoteRepository()
        note = await repo.create(session, "u1", "Dentist Friday 3pm")
        same = await repo.find_by_ids(session, [note.id], "u1")
    """

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def create(self, session: AsyncSession, owner_id: str, content: str) -> Note:
        """
        Persist a new note for ``owner_id``.

        Returns:
            The created note with id and timestamps populated.
        """
        note = Note(owner_id=owner_id, content=content.strip(), pinned=False)
        session.add(note)
        await session.commit()
        await session.refresh(note)
        logger.info("Created note %s for owner %s", note.id, owner_id)
        return note

    async def update(
        self,
        session: AsyncSession,
        note: Note,
        *,
        content: str | None = None,
        pinned: bool | None = None,
    ) -> Note:
        """
        Apply a partial update. ``updated_at`` is refreshed on any change.

        Args:
            session: Active database session.
            note: Note previously loaded with ``get`` (already owner-checked).
            content: New content, or None to keep it.
            pinned: New pin flag, or None to keep it.
        """
        if content is not None:
            note.content = content.strip()
        if pinned is not None:
            note.pinned = pinned
        note.updated_at = utcnow()
        await session.commit()
        await session.refresh(note)
        return note

    async def delete(self, session: AsyncSession, note_id: uuid.UUID, owner_id: str) -> bool:
        """Hard delete. Returns False when the note does not exist for this owner."""
        note = await self.get(session, note_id, owner_id)
        if note is None:
            return False
        await session.delete(note)
        await session.commit()
        logger.info("Deleted note %s for owner %s", note_id, owner_id)
        return True

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get(self, session: AsyncSession, note_id: uuid.UUID, owner_id: str) -> Note | None:
        """Get a note by id. Returns None if missing or owned by someone else."""
        result = await session.execute(
            select(Note).where(Note.id == note_id, Note.owner_id == owner_id)
        )
        return result.scalars().first()

    async def list_for_owner(
        self,
        session: AsyncSession,
        owner_id: str,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[Note], int]:
        """
        Page through an owner's notes, pinned first, then newest first.

        Returns:
            Tuple of (notes on the requested page, total notes for the owner).
        """
        total = await session.scalar(
            select(func.count()).select_from(Note).where(Note.owner_id == owner_id)
        )
        result = await session.execute(
            select(Note)
            .where(Note.owner_id == owner_id)
            .order_by(Note.pinned.desc(), Note.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def find_by_ids(
        self,
        session: AsyncSession,
        ids: Iterable[uuid.UUID],
        owner_id: str,
    ) -> list[Note]:
        """
        Hydrate notes for a set of ids, scoped to ``owner_id``.

        Ids that don't exist or belong to another owner are silently omitted.

        Raises:
            DocumentStoreError: If the database query fails.
        """
        id_list = list(ids)
        if not id_list:
            return []
        try:
            result = await session.execute(
                select(Note).where(Note.id.in_(id_list), Note.owner_id == owner_id)
            )
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Note lookup failed: {e}") from e
        return list(result.scalars().all())

    async def iter_owner_notes(
        self,
        session: AsyncSession,
        owner_id: str,
        batch_size: int = 100,
    ) -> AsyncIterator[Note]:
        """Stream every note of an owner in id order (used by re-sync)."""
        last_id: uuid.UUID | None = None
        while True:
            stmt = select(Note).where(Note.owner_id == owner_id)
            if last_id is not None:
                stmt = stmt.where(Note.id > last_id)
            result = await session.execute(stmt.order_by(Note.id).limit(batch_size))
            batch = result.scalars().all()
            if not batch:
                return
            for note in batch:
                yield note
            last_id = batch[-1].id

    async def owner_ids(self, session: AsyncSession) -> list[str]:
        """Distinct owners that have at least one note."""
        result = await session.execute(select(Note.owner_id).distinct())
        return list(result.scalars().all())


# Module-level singleton for convenience imports
note_repository = NoteRepository()
