#!/usr/bin/env python3
"""
Schema management for the scripts table.
Creates the pgvector extension, table and indexes idempotently.
"""

import logging
from typing import List, Optional

from core.errors import StoreError

logger = logging.getLogger(__name__)

SCRIPTS_TABLE = "scripts"


def schema_statements(dimensions: int) -> List[str]:
    """
    DDL statements for the scripts table, in execution order.

    Args:
        dimensions: Embedding vector length for this schema generation.
    """
    # The vector type modifier cannot be a bound parameter; it is validated as int
    if not isinstance(dimensions, int) or isinstance(dimensions, bool) or dimensions <= 0:
        raise ValueError(f"Invalid dimensions: must be a positive integer, got {dimensions!r}")

    return [
        "CREATE EXTENSION IF NOT EXISTS vector",
        f"""
        CREATE TABLE IF NOT EXISTS {SCRIPTS_TABLE} (
            id SERIAL PRIMARY KEY,
            path TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            category TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            usage TEXT NOT NULL DEFAULT '',
            tags JSONB NOT NULL DEFAULT '[]'::jsonb,
            dependencies JSONB NOT NULL DEFAULT '[]'::jsonb,
            token_count INTEGER NOT NULL CHECK (token_count >= 0),
            content_hash TEXT NOT NULL,
            embedding vector({dimensions}) NOT NULL,
            embedding_model TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """,
        f"CREATE INDEX IF NOT EXISTS idx_scripts_category ON {SCRIPTS_TABLE} (category)",
    ]


def get_embedding_dimensions(db) -> Optional[int]:
    """
    Return the declared vector length of scripts.embedding, or None if the
    table does not exist yet.
    """
    rows = db.execute(
        """
        SELECT a.atttypmod
        FROM pg_attribute a
        WHERE a.attrelid = to_regclass(%s)
          AND a.attname = 'embedding'
          AND NOT a.attisdropped
        """,
        (SCRIPTS_TABLE,),
    )
    if not rows:
        return None
    return rows[0][0]


def get_embedding_models(db) -> List[str]:
    """Distinct embedding models recorded in the scripts table."""
    rows = db.execute(
        f"SELECT DISTINCT embedding_model FROM {SCRIPTS_TABLE} ORDER BY embedding_model"
    )
    return [row[0] for row in rows]


def drop_schema(db) -> None:
    """Drop the scripts table and all its rows."""
    logger.warning(f"Dropping table {SCRIPTS_TABLE}")
    db.execute(f"DROP TABLE IF EXISTS {SCRIPTS_TABLE}")


def initialize_schema(db, dimensions: int, force: bool = False, model: Optional[str] = None) -> None:
    """
    Create the schema if it does not exist.

    Running this twice without force is a no-op the second time. With force
    the table is dropped and recreated, which is the only supported way to
    change the embedding model or dimension.

    Args:
        db: Connected DatabaseConnection.
        dimensions: Configured embedding dimension.
        force: Drop and recreate the table first.
        model: Configured embedding model. When given, existing rows must
            all have been embedded with it.

    Raises:
        StoreError: On database failure, or when the existing table was built
            for a different embedding dimension or model.
    """
    statements = schema_statements(dimensions)

    if force:
        drop_schema(db)

    for statement in statements:
        db.execute(statement)

    existing = get_embedding_dimensions(db)
    if existing is not None and existing > 0 and existing != dimensions:
        raise StoreError(
            f"Table {SCRIPTS_TABLE} stores {existing}-dimensional embeddings but "
            f"{dimensions} are configured. Re-run with --force to rebuild the schema."
        )

    if model is not None:
        stale_models = [m for m in get_embedding_models(db) if m != model]
        if stale_models:
            raise StoreError(
                f"Table {SCRIPTS_TABLE} holds embeddings from {', '.join(stale_models)} but "
                f"{model} is configured. Re-run with --force to rebuild the schema."
            )

    logger.info(f"Schema ready (embedding dimensions: {dimensions})")
