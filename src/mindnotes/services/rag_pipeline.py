"""
RAG Query Pipeline

Answers a free-text question about the caller's notes:

    embed query → owner-filtered similarity search → hydrate notes
    → merge scores & rank → build prompt → complete → answer + sources

Each stage depends on the previous stage's output, so the calls run
sequentially. Every external call has a per-call timeout; a failure or
timeout aborts the run with the stage's ``PipelineError`` and no partial
answer. Nothing is retried here: the caller decides whether to retry the
whole pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Sequence
from typing import Final, NamedTuple, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from mindnotes.core.config import settings
from mindnotes.core.errors import (
    CompletionUnavailable,
    EmbeddingUnavailable,
    IndexUnavailable,
    InvalidQuery,
    PipelineError,
    StoreUnavailable,
)
from mindnotes.models import Note
from mindnotes.repositories.notes import NoteRepository
from mindnotes.repositories.vectors import OwnerFilter, VectorIndex, VectorMatch
from mindnotes.schemas.query import EnrichedResult
from mindnotes.services.embeddings import EmbeddingClient
from mindnotes.services.llm import CompletionClient
from mindnotes.services.prompting import build_prompt

logger = logging.getLogger(__name__)

# Fixed candidate count: never more than 5 notes per answer
TOP_K: Final[int] = 5

T = TypeVar("T")


class AnswerResult(NamedTuple):
    """Return value of a successful pipeline run."""

    answer: str
    sources: list[EnrichedResult]


def merge_and_rank(matches: Sequence[VectorMatch], notes: Sequence[Note]) -> list[EnrichedResult]:
    """
    Join hydrated notes with their vector scores and rank them.

    A note with no matching vector hit gets score 0. Results are sorted by
    score descending; equal scores keep the vector index order.
    """
    position: dict[uuid.UUID, int] = {}
    score: dict[uuid.UUID, float] = {}
    for i, match in enumerate(matches):
        position.setdefault(match.id, i)
        score.setdefault(match.id, match.score)

    enriched = [
        (
            position.get(note.id, len(matches)),
            EnrichedResult(
                id=note.id,
                owner_id=note.owner_id,
                content=note.content,
                pinned=note.pinned,
                created_at=note.created_at,
                updated_at=note.updated_at,
                score=score.get(note.id) or 0.0,
            ),
        )
        for note in notes
    ]
    enriched.sort(key=lambda item: (-item[1].score, item[0]))
    return [result for _, result in enriched]


class NotesRAGPipeline:
    """
    Retrieval-augmented question answering over one owner's notes.

    Usage::

        pipeline = NotesRAGPipeline(embedder, vector_index, note_repository, llm)
        async with session_factory() as session:
            result = await pipeline.answer(session, "u1", "when is my dentist?")
            print(result.answer, [s.id for s in result.sources])
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndex,
        store: NoteRepository,
        completion: CompletionClient,
        timeout: float | None = None,
        min_score: float | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._store = store
        self._completion = completion
        self._timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self._min_score = min_score if min_score is not None else settings.RAG_MIN_SCORE

    async def answer(self, session: AsyncSession, owner_id: str, query_text: str) -> AnswerResult:
        """
        Run the full pipeline for ``owner_id``.

        Args:
            session: Active async database session.
            owner_id: Authenticated caller.
            query_text: The question.

        Returns:
            AnswerResult with the completion text and ranked sources.

        Raises:
            InvalidQuery: Empty query text.
            EmbeddingUnavailable, IndexUnavailable, StoreUnavailable,
            CompletionUnavailable: The corresponding stage failed or timed out.
        """
        if not isinstance(query_text, str) or not query_text.strip():
            raise InvalidQuery("Query text must be a non-empty string")
        query_text = query_text.strip()
        started = time.perf_counter()

        # --- Step 1: Embed ---
        vector = await self._stage(self._embedder.embed(query_text), EmbeddingUnavailable)

        # --- Step 2: Owner-filtered similarity search ---
        matches = await self._stage(
            self._index.query(session, vector, TOP_K, OwnerFilter(owner_id=owner_id)),
            IndexUnavailable,
            session,
        )

        # --- Step 3: Hydrate ---
        notes: list[Note] = []
        if matches:
            hydrated = await self._stage(
                self._store.find_by_ids(session, [m.id for m in matches], owner_id),
                StoreUnavailable,
                session,
            )
            notes = self._own_notes(hydrated, owner_id)
            dangling = len({m.id for m in matches} - {n.id for n in notes})
            if dangling:
                logger.debug("Dropped %d dangling vector match(es) for owner %s", dangling, owner_id)

        # --- Step 4: Merge & rank ---
        sources = merge_and_rank(matches, notes)
        if self._min_score is not None:
            sources = [s for s in sources if s.score >= self._min_score]

        # --- Step 5: Prompt ---
        prompt = build_prompt(query_text, sources)

        # --- Step 6: Complete ---
        answer = await self._stage(self._completion.complete(prompt), CompletionUnavailable)

        logger.info(
            "Answered query for owner %s (%d matches, %d sources, %.0f ms)",
            owner_id,
            len(matches),
            len(sources),
            (time.perf_counter() - started) * 1000,
        )
        return AnswerResult(answer=answer, sources=sources)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _stage(
        self,
        call: Awaitable[T],
        error: type[PipelineError],
        session: AsyncSession | None = None,
    ) -> T:
        """
        Await one external call under the per-call timeout, mapping failures to ``error``.

        ``session`` is the session a database stage runs on; it is rolled back
        when that stage is cancelled so it is never reused mid-statement.
        """
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except TimeoutError as e:
            logger.warning("Stage '%s' timed out after %.1fs", error.stage, self._timeout)
            if session is not None:
                await session.rollback()
            raise error(f"timed out after {self._timeout:.1f}s") from e
        except Exception as e:
            logger.warning("Stage '%s' failed: %s: %s", error.stage, type(e).__name__, e)
            raise error(str(e) or type(e).__name__) from e

    @staticmethod
    def _own_notes(notes: Sequence[Note], owner_id: str) -> list[Note]:
        """Second owner check after hydration, independent of the store's filter."""
        own = [note for note in notes if note.owner_id == owner_id]
        if len(own) != len(notes):
            logger.warning(
                "Discarded %d hydrated note(s) not owned by %s",
                len(notes) - len(own),
                owner_id,
            )
        return own
