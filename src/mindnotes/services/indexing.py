"""
Note Index Synchronization

Keeps the vector index in step with the note store.

The note store is the source of truth and is always written first. The
index is a derived projection: failures here never fail the note write or
delete. They are reported as an explicit ``IndexSyncResult`` instead, so
callers and tests can tell a fully indexed note from a degraded one.

    create/update  → embed content → upsert(note.id, vector, {owner_id})
    delete         → delete(note.id)   (failure leaves a dangling vector,
                                        dropped later at query time)
    re-sync        → re-embed every note of an owner, prune stale vectors
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from mindnotes.core.config import settings
from mindnotes.core.database import get_session_factory
from mindnotes.core.errors import EmbeddingFailure, VectorIndexError
from mindnotes.models import Note
from mindnotes.repositories.notes import NoteRepository
from mindnotes.repositories.vectors import VectorIndex, VectorMetadata
from mindnotes.services.embeddings import EmbeddingClient

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 2  # Base delay, multiplied by attempt number (linear backoff)


class IndexSyncStatus(enum.Enum):
    INDEXED = "indexed"
    # EmbeddingDegraded: note saved but not semantically searchable
    DEGRADED = "degraded"
    SKIPPED = "skipped"
    REMOVED = "removed"
    # Vector delete failed; the hydrate step drops the leftover match
    DANGLING = "dangling"


@dataclass(frozen=True)
class IndexSyncResult:
    note_id: uuid.UUID
    status: IndexSyncStatus
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (IndexSyncStatus.INDEXED, IndexSyncStatus.REMOVED)


@dataclass(frozen=True)
class ReindexReport:
    indexed: int = 0
    degraded: int = 0
    pruned: int = 0


class NoteIndexer:
    """
    Maintains note vectors after note writes and deletes.

    Usage::

        indexer = NoteIndexer(get_embedding_client(), vector_index, note_repository)
        result = await indexer.on_note_written(session, note)
        if result.status is IndexSyncStatus.DEGRADED:
            ...  # note is readable, just not searchable yet
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndex,
        store: NoteRepository,
        timeout: float | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._store = store
        self._timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT

    async def on_note_written(self, session: AsyncSession, note: Note) -> IndexSyncResult:
        """Re-embed ``note`` and upsert its vector. Never raises for index failures."""
        return await self._index_content(session, note.id, note.owner_id, note.content)

    async def on_note_deleted(self, session: AsyncSession, note_id: uuid.UUID) -> IndexSyncResult:
        """Delete the vector of a note already removed from the store."""
        try:
            await self._index.delete(session, note_id)
        except VectorIndexError as e:
            logger.warning("Vector delete failed for note %s, left dangling: %s", note_id, e)
            return IndexSyncResult(note_id, IndexSyncStatus.DANGLING, str(e))
        return IndexSyncResult(note_id, IndexSyncStatus.REMOVED)

    async def reindex_owner(self, session: AsyncSession, owner_id: str) -> ReindexReport:
        """
        Re-embed and upsert every note of ``owner_id`` and prune its stale vectors.

        Idempotent: running it twice leaves the index in the same state.

        Raises:
            VectorIndexError: If the owner's indexed ids cannot be listed.
        """
        # Snapshot first: a failed upsert rolls the session back and expires loaded notes
        snapshot = [
            (note.id, note.owner_id, note.content)
            async for note in self._store.iter_owner_notes(session, owner_id)
        ]

        indexed = degraded = 0
        for note_id, note_owner, content in snapshot:
            result = await self._index_content(session, note_id, note_owner, content)
            if result.status is IndexSyncStatus.INDEXED:
                indexed += 1
            elif result.status is IndexSyncStatus.DEGRADED:
                degraded += 1

        live_ids = {note_id for note_id, _, _ in snapshot}
        stale_ids = await self._index.ids_for_owner(session, owner_id) - live_ids
        pruned = 0
        for stale_id in stale_ids:
            if (await self.on_note_deleted(session, stale_id)).ok:
                pruned += 1

        logger.info(
            "Re-synced owner %s: %d indexed, %d degraded, %d pruned",
            owner_id,
            indexed,
            degraded,
            pruned,
        )
        return ReindexReport(indexed=indexed, degraded=degraded, pruned=pruned)

    async def _index_content(
        self,
        session: AsyncSession,
        note_id: uuid.UUID,
        owner_id: str,
        content: str,
    ) -> IndexSyncResult:
        if not content or not content.strip():
            return IndexSyncResult(note_id, IndexSyncStatus.SKIPPED, "empty content")

        stage = "embed"
        try:
            vector = await asyncio.wait_for(self._embedder.embed(content), self._timeout)
            stage = "upsert"
            await asyncio.wait_for(
                self._index.upsert(session, note_id, vector, VectorMetadata(owner_id=owner_id)),
                self._timeout,
            )
        except TimeoutError:
            if stage == "upsert" and session is not None:
                # The cancelled statement leaves the transaction unusable
                await session.rollback()
            reason = f"{stage} timed out after {self._timeout:.1f}s"
            logger.error("Note %s not indexed (degraded): %s", note_id, reason)
            return IndexSyncResult(note_id, IndexSyncStatus.DEGRADED, reason)
        except (EmbeddingFailure, VectorIndexError) as e:
            logger.error("Note %s not indexed (degraded): %s", note_id, e)
            return IndexSyncResult(note_id, IndexSyncStatus.DEGRADED, str(e))

        logger.info("Indexed note %s for owner %s", note_id, owner_id)
        return IndexSyncResult(note_id, IndexSyncStatus.INDEXED)


# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------


async def sync_note_in_background(
    indexer: NoteIndexer,
    store: NoteRepository,
    note_id: uuid.UUID,
    owner_id: str,
    max_attempts: int = MAX_ATTEMPTS,
) -> IndexSyncResult:
    """
    Index a note after the HTTP response has been sent.

    Creates its own database session since FastAPI background tasks run
    after the request session is closed. The note is re-read on each
    attempt so the latest content is embedded.
    """
    result = IndexSyncResult(note_id, IndexSyncStatus.SKIPPED, "not attempted")
    factory = get_session_factory()

    for attempt in range(max_attempts):
        # New session per attempt: previous session may be in failed state
        async with factory() as session:
            note = await store.get(session, note_id, owner_id)
            if note is None:
                logger.info("Note %s deleted before indexing, skipping", note_id)
                return IndexSyncResult(note_id, IndexSyncStatus.SKIPPED, "note deleted")

            result = await indexer.on_note_written(session, note)
            if result.status is not IndexSyncStatus.DEGRADED:
                return result

        if attempt < max_attempts - 1:
            await asyncio.sleep(RETRY_DELAY_SECONDS * (attempt + 1))

    logger.error("Note %s still not indexed after %d attempts", note_id, max_attempts)
    return result


async def remove_note_in_background(indexer: NoteIndexer, note_id: uuid.UUID) -> IndexSyncResult:
    """Delete a note's vector with a dedicated session."""
    factory = get_session_factory()
    async with factory() as session:
        return await indexer.on_note_deleted(session, note_id)
