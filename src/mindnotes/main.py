"""
mindnotes API

Notes CRUD plus conversational questions over one's own notes.

Startup blocks until Postgres answers and, with the local embedding
provider, until the sentence-transformers model is in memory. Shutdown
releases both.

Run:
    uvicorn mindnotes.main:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from mindnotes.api.v1.notes import router as notes_router
from mindnotes.api.v1.query import router as query_router
from mindnotes.core.config import settings
from mindnotes.core.database import dispose_engine, get_engine
from mindnotes.core.logging import setup_logging
from mindnotes.services.embeddings import LocalEmbeddingClient

VERSION = "0.1.0"

setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Ping Postgres with ``SELECT 1`` until it answers.

    Compose starts the API and the database together, so the first few
    pings are expected to fail.

    Returns:
        True once a ping succeeds, False after ``retries`` failures.
    """
    engine = get_engine()
    for attempt in range(1, retries + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Postgres not ready (%d/%d): %s", attempt, retries, e)
            await asyncio.sleep(delay)
            continue
        logger.info("Postgres reachable")
        return True
    return False


async def preload_embedding_model() -> None:
    """Load the local sentence-transformers model off the event loop."""
    if settings.EMBEDDING_PROVIDER != "local":
        return
    logger.info("Loading local embedding model %s", settings.LOCAL_EMBEDDING_MODEL)
    await asyncio.to_thread(LocalEmbeddingClient.load_model, settings.LOCAL_EMBEDDING_MODEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
        - Postgres must be reachable, otherwise the app refuses to start.
        - Local embedding model pre-load (first query would pay for it).

    Shutdown:
        - Drop the model and dispose the engine.
    """
    logger.info(
        "Starting %s %s (embeddings=%s, llm=%s, log=%s)",
        settings.PROJECT_NAME,
        VERSION,
        settings.EMBEDDING_PROVIDER,
        settings.LLM_PROVIDER,
        settings.LOG_LEVEL,
    )

    if not await wait_for_db():
        logger.critical("Postgres unreachable, aborting startup")
        raise RuntimeError("Database connection failed")

    await preload_embedding_model()

    yield

    LocalEmbeddingClient.reset()
    await dispose_engine()
    logger.info("%s stopped", settings.PROJECT_NAME)


app = FastAPI(title=settings.PROJECT_NAME, version=VERSION, lifespan=lifespan)

app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])
app.include_router(query_router, prefix="/api/v1", tags=["Query"])


@app.get("/health")
async def health_check():
    """Static liveness payload; does not call Postgres or the providers."""
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
        "version": VERSION,
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "providers": {
            "embeddings": settings.EMBEDDING_PROVIDER,
            "llm": settings.LLM_PROVIDER,
        },
    }
