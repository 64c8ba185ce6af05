"""
Vector Index

Contract for the note embedding index and its pgvector implementation.

Owner isolation is part of the type signature: ``query`` takes an
``OwnerFilter`` (never an open-ended dict), so a caller cannot forget the
owner scope without a type error.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mindnotes.core.errors import VectorIndexError
from mindnotes.models import NoteVector
from mindnotes.models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorMetadata:
    """Metadata stored alongside each vector."""

    owner_id: str


@dataclass(frozen=True)
class OwnerFilter:
    """Restricts a similarity search to one owner's vectors."""

    owner_id: str


@dataclass(frozen=True)
class VectorMatch:
    """One similarity search hit (no vector values)."""

    id: uuid.UUID
    score: float
    metadata: VectorMetadata


class VectorIndex(ABC):
    """
    Storage of (id, vector, metadata) triples with filtered top-K search.

    Guarantees expected from every implementation:
        - ``upsert`` is idempotent and replaces vector and metadata together.
        - ``delete`` of an unknown id is not an error.
        - ``query`` returns at most ``top_k`` matches ordered by descending
          score, only for the filtered owner, and an empty list when
          nothing matches.
    """

    @abstractmethod
    async def upsert(
        self,
        session: AsyncSession,
        id: uuid.UUID,
        vector: list[float],
        metadata: VectorMetadata,
    ) -> None: ...

    @abstractmethod
    async def delete(self, session: AsyncSession, id: uuid.UUID) -> None: ...

    @abstractmethod
    async def query(
        self,
        session: AsyncSession,
        vector: list[float],
        top_k: int,
        owner_filter: OwnerFilter,
    ) -> list[VectorMatch]: ...

    @abstractmethod
    async def ids_for_owner(self, session: AsyncSession, owner_id: str) -> set[uuid.UUID]: ...


class PgVectorIndex(VectorIndex):
    """
    Vector index stored in the ``note_vectors`` table.

    Similarity is cosine: ``score = 1 - cosine_distance`` (higher = more
    similar), served by the HNSW index on ``note_vectors.embedding``.
    Database errors are re-raised as ``VectorIndexError`` after rolling the
    session back.
    """

    async def upsert(
        self,
        session: AsyncSession,
        id: uuid.UUID,
        vector: list[float],
        metadata: VectorMetadata,
    ) -> None:
        stmt = insert(NoteVector).values(
            id=id,
            owner_id=metadata.owner_id,
            embedding=vector,
            indexed_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[NoteVector.id],
            set_={
                "owner_id": stmt.excluded.owner_id,
                "embedding": stmt.excluded.embedding,
                "indexed_at": stmt.excluded.indexed_at,
            },
        )
        try:
            await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise VectorIndexError(f"Upsert failed for {id}: {e}") from e
        logger.debug("Upserted vector %s (owner=%s)", id, metadata.owner_id)

    async def delete(self, session: AsyncSession, id: uuid.UUID) -> None:
        try:
            await session.execute(delete(NoteVector).where(NoteVector.id == id))
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise VectorIndexError(f"Delete failed for {id}: {e}") from e

    async def query(
        self,
        session: AsyncSession,
        vector: list[float],
        top_k: int,
        owner_filter: OwnerFilter,
    ) -> list[VectorMatch]:
        distance = NoteVector.embedding.cosine_distance(vector).label("distance")
        stmt = (
            select(NoteVector.id, NoteVector.owner_id, distance)
            .where(NoteVector.owner_id == owner_filter.owner_id)
            .order_by(distance)
            .limit(top_k)
        )
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as e:
            raise VectorIndexError(f"Similarity query failed: {e}") from e

        return [
            VectorMatch(
                id=row.id,
                score=round(1.0 - float(row.distance), 4),
                metadata=VectorMetadata(owner_id=row.owner_id),
            )
            for row in result.all()
        ]

    async def ids_for_owner(self, session: AsyncSession, owner_id: str) -> set[uuid.UUID]:
        try:
            result = await session.execute(
                select(NoteVector.id).where(NoteVector.owner_id == owner_id)
            )
        except SQLAlchemyError as e:
            raise VectorIndexError(f"Listing vectors failed: {e}") from e
        return set(result.scalars().all())


# Module-level singleton for convenience imports
vector_index = PgVectorIndex()
