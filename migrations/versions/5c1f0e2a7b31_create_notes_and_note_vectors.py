"""create notes and note_vectors

Revision ID: 5c1f0e2a7b31
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

import os
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = "5c1f0e2a7b31"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Must match the embedding model: 1536 (text-embedding-3-small) or 384 (MiniLM)
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "1536"))


def upgrade() -> None:
    """Create the note store and the note vector index."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # -- notes table (source of truth) --
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notes_owner_id", "notes", ["owner_id"])

    # -- note_vectors table (derived index, no FK to notes) --
    op.create_table(
        "note_vectors",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSION), nullable=False),
        sa.Column(
            "indexed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_note_vectors_owner_id", "note_vectors", ["owner_id"])

    # HNSW index for fast cosine similarity search
    op.execute(
        """
        CREATE INDEX ix_note_vectors_embedding_hnsw
        ON note_vectors
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
        """
    )


def downgrade() -> None:
    """Drop note_vectors and notes tables."""
    op.execute("DROP INDEX IF EXISTS ix_note_vectors_embedding_hnsw")
    op.drop_index("ix_note_vectors_owner_id", table_name="note_vectors")
    op.drop_table("note_vectors")
    op.drop_index("ix_notes_owner_id", table_name="notes")
    op.drop_table("notes")
