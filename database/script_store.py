#!/usr/bin/env python3
"""
Row-level access to the scripts table.
All statements are parameterized; vectors are passed as pgvector literals.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from database.schema import SCRIPTS_TABLE, initialize_schema

logger = logging.getLogger(__name__)

UPSERT_SQL = f"""
    INSERT INTO {SCRIPTS_TABLE}
        (path, name, category, description, usage, tags, dependencies,
         token_count, content_hash, embedding, embedding_model, updated_at)
    VALUES (%s, %s, %s, %s, %s, %s::jsonb, %s::jsonb, %s, %s, %s::vector, %s, now())
    ON CONFLICT (path) DO UPDATE SET
        name = EXCLUDED.name,
        category = EXCLUDED.category,
        description = EXCLUDED.description,
        usage = EXCLUDED.usage,
        tags = EXCLUDED.tags,
        dependencies = EXCLUDED.dependencies,
        token_count = EXCLUDED.token_count,
        content_hash = EXCLUDED.content_hash,
        embedding = EXCLUDED.embedding,
        embedding_model = EXCLUDED.embedding_model,
        updated_at = now()
    RETURNING (xmax = 0) AS inserted
"""

# Leaves token_count, content_hash and embedding untouched: the content did not change
REFRESH_SQL = f"""
    UPDATE {SCRIPTS_TABLE} SET
        name = %s,
        category = %s,
        description = %s,
        usage = %s,
        tags = %s::jsonb,
        dependencies = %s::jsonb,
        updated_at = now()
    WHERE path = %s AND content_hash = %s
    RETURNING id
"""


def to_vector_literal(vector: Sequence[float]) -> str:
    """Format a vector as a PostgreSQL pgvector literal."""
    return "[" + ",".join(map(str, vector)) + "]"


class ScriptStore:
    """Insert-or-update, statistics and similarity queries for indexed scripts."""

    def __init__(self, db):
        """
        Args:
            db: DatabaseConnection (or anything with execute(statement, params) -> rows).
        """
        self.db = db

    @property
    def is_healthy(self) -> bool:
        return getattr(self.db, "is_healthy", True)

    def initialize_schema(self, dimensions: int, force: bool = False, model: Optional[str] = None) -> None:
        initialize_schema(self.db, dimensions, force=force, model=model)

    def get_content_hash(self, path: str) -> Optional[str]:
        """Stored content hash for a path, or None if the path is not indexed."""
        rows = self.db.execute(
            f"SELECT content_hash FROM {SCRIPTS_TABLE} WHERE path = %s", (path,)
        )
        return rows[0][0] if rows else None

    def upsert_script(self, metadata, embedding: Sequence[float], model: str) -> bool:
        """
        Insert or update a script row by path.

        PostgreSQL's ON CONFLICT makes this a single atomic statement, so
        concurrent upserts of the same path cannot create duplicate rows.

        Returns:
            True if a new row was inserted, False if an existing row was updated.
        """
        rows = self.db.execute(
            UPSERT_SQL,
            (
                metadata.path,
                metadata.name,
                metadata.category,
                metadata.description,
                metadata.usage,
                json.dumps(list(metadata.tags)),
                json.dumps(list(metadata.dependencies)),
                metadata.token_count,
                metadata.content_hash,
                to_vector_literal(embedding),
                model,
            ),
        )
        return bool(rows[0][0]) if rows else False

    def refresh_metadata(self, metadata) -> bool:
        """
        Update descriptive columns of an unchanged script, keeping its embedding.

        Returns:
            False if no row with this path and content hash exists (any more).
        """
        rows = self.db.execute(
            REFRESH_SQL,
            (
                metadata.name,
                metadata.category,
                metadata.description,
                metadata.usage,
                json.dumps(list(metadata.tags)),
                json.dumps(list(metadata.dependencies)),
                metadata.path,
                metadata.content_hash,
            ),
        )
        return bool(rows)

    def get_stats(self) -> Dict[str, Any]:
        """Aggregate counts over the persisted rows."""
        totals = self.db.execute(
            f"""
            SELECT COUNT(*), COALESCE(AVG(token_count), 0), COALESCE(SUM(token_count), 0)
            FROM {SCRIPTS_TABLE}
            """
        )
        total_scripts, avg_tokens, total_tokens = totals[0] if totals else (0, 0, 0)

        category_rows = self.db.execute(
            f"""
            SELECT category, COUNT(*)
            FROM {SCRIPTS_TABLE}
            GROUP BY category
            ORDER BY category
            """
        )

        return {
            "total_scripts": int(total_scripts),
            "avg_tokens": float(avg_tokens),
            "total_tokens": int(total_tokens),
            "categories": {category: int(count) for category, count in category_rows},
        }

    def list_paths(self) -> List[str]:
        rows = self.db.execute(f"SELECT path FROM {SCRIPTS_TABLE} ORDER BY path")
        return [row[0] for row in rows]

    def delete_paths(self, paths: Iterable[str]) -> int:
        """Delete rows by path. Returns the number of rows removed."""
        paths = list(paths)
        if not paths:
            return 0
        rows = self.db.execute(
            f"DELETE FROM {SCRIPTS_TABLE} WHERE path = ANY(%s) RETURNING path",
            (paths,),
        )
        logger.info(f"Deleted {len(rows)} script row(s)")
        return len(rows)

    def search_similar(self, embedding: Sequence[float], limit: int = 10,
                       category: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Rows ordered by cosine distance to the given embedding.

        Returns:
            Dicts with path, category, description and similarity (1 - distance).
        """
        vector = to_vector_literal(embedding)
        params: List[Any] = [vector]
        where = ""
        if category:
            where = "WHERE category = %s"
            params.append(category)
        params.extend([vector, limit])

        rows = self.db.execute(
            f"""
            SELECT path, category, description, 1 - (embedding <=> %s::vector) AS similarity
            FROM {SCRIPTS_TABLE}
            {where}
            ORDER BY embedding <=> %s::vector
            LIMIT %s
            """,
            params,
        )
        return [
            {
                "path": path,
                "category": row_category,
                "description": description,
                "similarity": float(similarity),
            }
            for path, row_category, description, similarity in rows
        ]
