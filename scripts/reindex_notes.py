#!/usr/bin/env python3
"""
Re-index Notes Script

Re-embeds notes and rewrites their vectors, then prunes vectors whose
notes no longer exist. Use it after an embedding outage (degraded writes),
after failed deletes (dangling vectors), or after switching embedding model.

Usage:
    $ python scripts/reindex_notes.py                # every owner
    $ python scripts/reindex_notes.py --owner u1     # a single owner
"""

import argparse
import asyncio
import logging
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from mindnotes.core.database import dispose_engine, get_session_factory  # noqa: E402
from mindnotes.core.logging import setup_logging  # noqa: E402
from mindnotes.repositories import note_repository, vector_index  # noqa: E402
from mindnotes.services.embeddings import get_embedding_client  # noqa: E402
from mindnotes.services.indexing import NoteIndexer  # noqa: E402

logger = logging.getLogger("mindnotes.scripts.reindex")


async def main(owner: str | None) -> int:
    """
    Re-sync one owner, or every owner with at least one note.

    Returns:
        Process exit code: 1 if any note stayed degraded, else 0.
    """
    indexer = NoteIndexer(get_embedding_client(), vector_index, note_repository)
    factory = get_session_factory()
    degraded = 0

    try:
        async with factory() as session:
            owners = [owner] if owner else await note_repository.owner_ids(session)
            logger.info("Re-indexing %d owner(s)", len(owners))

            for owner_id in owners:
                report = await indexer.reindex_owner(session, owner_id)
                degraded += report.degraded
    finally:
        await dispose_engine()

    if degraded:
        logger.warning("%d note(s) could not be indexed; run again later", degraded)
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Re-embed notes into the vector index")
    parser.add_argument("--owner", default=None, help="Only re-index this owner id")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (e.g. DEBUG)")
    args = parser.parse_args()

    setup_logging(args.log_level)
    sys.exit(asyncio.run(main(args.owner)))
