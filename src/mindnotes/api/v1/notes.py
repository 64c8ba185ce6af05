"""
Notes API Router

REST endpoints for owner-scoped note CRUD.

The note store is written first and the response returned immediately;
vector index maintenance runs as a background task afterwards, so a slow
or failing embedding provider never fails a note write.
"""

from __future__ import annotations

import logging
import math
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from mindnotes.core.auth import get_current_owner
from mindnotes.core.database import get_db
from mindnotes.repositories.notes import NoteRepository, note_repository
from mindnotes.repositories.vectors import vector_index
from mindnotes.schemas.notes import (
    NoteCreate,
    NoteList,
    NoteRead,
    NoteUpdate,
    Pagination,
    PinUpdate,
    ReindexResponse,
)
from mindnotes.services.embeddings import get_embedding_client
from mindnotes.services.indexing import (
    NoteIndexer,
    remove_note_in_background,
    sync_note_in_background,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_note_repository() -> NoteRepository:
    """FastAPI dependency - returns the NoteRepository."""
    return note_repository


def get_indexer() -> NoteIndexer:
    """FastAPI dependency - returns a NoteIndexer wired to the configured providers."""
    return NoteIndexer(get_embedding_client(), vector_index, note_repository)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    note_in: NoteCreate,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    repo: NoteRepository = Depends(get_note_repository),
    indexer: NoteIndexer = Depends(get_indexer),
):
    """
    Create a new note.

    The note is immediately readable; it appears in semantic queries once
    the background indexing task has embedded it.
    """
    note = await repo.create(db, owner_id, note_in.content)
    background_tasks.add_task(sync_note_in_background, indexer, repo, note.id, owner_id)
    return note


@router.get("/", response_model=NoteList)
async def list_notes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    repo: NoteRepository = Depends(get_note_repository),
):
    """List the caller's notes, pinned first, newest first."""
    notes, total = await repo.list_for_owner(db, owner_id, page=page, limit=limit)
    total_pages = math.ceil(total / limit)
    return NoteList(
        notes=[NoteRead.model_validate(n) for n in notes],
        pagination=Pagination(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_more=page < total_pages,
        ),
    )


@router.post("/reindex", response_model=ReindexResponse)
async def reindex_notes(
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    indexer: NoteIndexer = Depends(get_indexer),
):
    """
    Re-embed every note of the caller and prune stale vectors.

    Repair tool for notes whose indexing was degraded. Runs inline.
    """
    report = await indexer.reindex_owner(db, owner_id)
    return ReindexResponse(indexed=report.indexed, degraded=report.degraded, pruned=report.pruned)


@router.get("/{note_id}", response_model=NoteRead)
async def read_note(
    note_id: UUID,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    repo: NoteRepository = Depends(get_note_repository),
):
    """Retrieve a single note. Other owners' notes are reported as missing."""
    note = await repo.get(db, note_id, owner_id)
    if note is None:
        raise _not_found()
    return note


@router.patch("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: UUID,
    note_in: NoteUpdate,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    repo: NoteRepository = Depends(get_note_repository),
    indexer: NoteIndexer = Depends(get_indexer),
):
    """Partially update content and/or pin flag. Content changes are re-indexed."""
    if note_in.content is None and note_in.pinned is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    note = await repo.get(db, note_id, owner_id)
    if note is None:
        raise _not_found()

    content_changed = note_in.content is not None and note_in.content != note.content
    note = await repo.update(db, note, content=note_in.content, pinned=note_in.pinned)
    if content_changed:
        background_tasks.add_task(sync_note_in_background, indexer, repo, note.id, owner_id)
    return note


@router.patch("/{note_id}/pin", response_model=NoteRead)
async def pin_note(
    note_id: UUID,
    pin: PinUpdate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    repo: NoteRepository = Depends(get_note_repository),
):
    """Pin or unpin a note. The embedding is unaffected."""
    note = await repo.get(db, note_id, owner_id)
    if note is None:
        raise _not_found()
    return await repo.update(db, note, pinned=pin.pinned)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: UUID,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    repo: NoteRepository = Depends(get_note_repository),
    indexer: NoteIndexer = Depends(get_indexer),
):
    """Delete a note, then its vector. A failed vector delete is tolerated."""
    if not await repo.delete(db, note_id, owner_id):
        raise _not_found()
    background_tasks.add_task(remove_note_in_background, indexer, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
