"""
Query API Router

Conversational questions over the caller's notes via the RAG pipeline.

    POST /query: embed, retrieve, hydrate, rank, generate.

A failed pipeline run is reported as one error carrying the stage and
kind; no partial sources are returned.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from mindnotes.core.auth import get_current_owner
from mindnotes.core.database import get_db
from mindnotes.core.errors import InvalidQuery, PipelineError
from mindnotes.repositories.notes import note_repository
from mindnotes.repositories.vectors import vector_index
from mindnotes.schemas.query import QueryErrorResponse, QueryRequest, QueryResponse
from mindnotes.services.embeddings import get_embedding_client
from mindnotes.services.llm import get_completion_client
from mindnotes.services.rag_pipeline import NotesRAGPipeline

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_FAILURE = "Couldn't get an answer right now. Please try again."


def get_pipeline() -> NotesRAGPipeline:
    """FastAPI dependency - returns a NotesRAGPipeline wired to the configured providers."""
    return NotesRAGPipeline(
        embedder=get_embedding_client(),
        index=vector_index,
        store=note_repository,
        completion=get_completion_client(),
    )


@router.post(
    "/query",
    response_model=QueryResponse,
    summary="Ask a question about your notes",
    responses={
        400: {"model": QueryErrorResponse, "description": "Empty or invalid query"},
        502: {"model": QueryErrorResponse, "description": "An upstream stage failed"},
    },
)
async def query_notes(
    request: QueryRequest,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    pipeline: NotesRAGPipeline = Depends(get_pipeline),
):
    """
    Answer a question using the caller's notes as background knowledge.

    When no note is relevant, the answer says so instead of guessing.
    """
    logger.info("Query from %s: '%s'", owner_id, request.q[:50])

    try:
        result = await pipeline.answer(db, owner_id, request.q)
    except InvalidQuery as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=QueryErrorResponse(detail=e.message, stage=e.stage, kind=e.kind).model_dump(),
        )
    except PipelineError as e:
        logger.error("Query pipeline failed for %s: %s", owner_id, e)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=QueryErrorResponse(detail=GENERIC_FAILURE, stage=e.stage, kind=e.kind).model_dump(),
        )

    return QueryResponse(query=request.q, answer=result.answer, sources=result.sources)
