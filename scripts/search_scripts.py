#!/usr/bin/env python3
"""
Semantic script search CLI.

Usage:
    python scripts/search_scripts.py "configure audio settings"
    python scripts/search_scripts.py "fix microphone" --category=audio --limit=5
"""

import logging
import os
import sys
from typing import Optional

import click

# Ensure project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import Settings
from core.errors import SeedError
from core.search import ScriptSearch
from database.connection import DatabaseConnection
from database.script_store import ScriptStore
from embeddings.client import EmbeddingClient

logger = logging.getLogger(__name__)


@click.command()
@click.argument("query")
@click.option("--category", type=str, default=None, help="Filter by category (audio, system, dev)")
@click.option("--limit", type=click.IntRange(min=1), default=10, help="Maximum number of results")
@click.option("--min-similarity", type=click.FloatRange(-1.0, 1.0), default=None,
              help="Minimum cosine similarity")
def main(query: str, category: Optional[str], limit: int, min_similarity: Optional[float]) -> None:
    """Search indexed scripts with a natural-language QUERY."""
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(message)s')

    db = None
    try:
        settings = Settings.from_env()
        db = DatabaseConnection.from_settings(settings)
        db.connect()

        search = ScriptSearch(ScriptStore(db), EmbeddingClient.from_settings(settings))
        results = search.search(query, limit=limit, category=category, min_similarity=min_similarity)

        if not results:
            print("No matching scripts.")
            return

        for rank, result in enumerate(results, 1):
            print(f"{rank}. {result.path} [{result.category}] ({result.similarity:.3f})")
            if result.description:
                print(f"   {result.description}")
    except (SeedError, ValueError) as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


if __name__ == "__main__":
    main()
