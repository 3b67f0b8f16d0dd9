#!/usr/bin/env python3
"""
Semantic search over indexed scripts using pgvector cosine distance.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    path: str
    category: str
    description: str
    similarity: float


class ScriptSearch:
    """Embed a natural-language query and rank scripts by similarity."""

    def __init__(self, store, embedder):
        if store is None:
            raise ValueError("Invalid config: store is required")
        if embedder is None:
            raise ValueError("Invalid config: embedder is required")
        self.store = store
        self.embedder = embedder

    def search(self, query: str, limit: int = 10, category: Optional[str] = None,
               min_similarity: Optional[float] = None) -> List[SearchResult]:
        """
        Find scripts similar to a query.

        Args:
            query: Natural-language query.
            limit: Maximum number of results.
            category: Only search this category.
            min_similarity: Drop results below this cosine similarity.

        Returns:
            Results ordered by descending similarity.
        """
        if not query or not query.strip():
            raise ValueError("Invalid query: query cannot be empty")
        if limit <= 0:
            raise ValueError("Invalid limit: limit must be positive")

        query_embedding = self.embedder.embed(query)
        rows = self.store.search_similar(query_embedding, limit=limit, category=category)

        results = [SearchResult(**row) for row in rows]
        if min_similarity is not None:
            results = [r for r in results if r.similarity >= min_similarity]

        logger.info(f"Search '{query}' returned {len(results)} result(s)")
        return results
