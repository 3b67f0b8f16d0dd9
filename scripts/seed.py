#!/usr/bin/env python3
"""
CLI entry point for seeding the script index.
Discovers scripts, analyzes them, generates embeddings with OpenAI and
stores everything in PostgreSQL (pgvector) for semantic search.

Usage:
    python scripts/seed.py
    python scripts/seed.py --directory=./scripts/audio
    python scripts/seed.py --force
"""

import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import click

# Ensure project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import DEFAULT_DIRECTORY, Settings
from core.analyzer import ScriptAnalyzer
from core.errors import ConfigurationError, DiscoveryError, SeedError
from core.seeder import DatabaseSeeder, FileFailure
from database.connection import DatabaseConnection
from database.script_store import ScriptStore
from embeddings.client import EmbeddingClient

logger = logging.getLogger(__name__)

MAX_ERRORS_SHOWN = 5

HELP_TEXT = """
Database Seeding Tool

Seed the database with script metadata and vector embeddings for semantic search.

USAGE:
  python scripts/seed.py [OPTIONS]

OPTIONS:
  --directory=<path>   Directory to scan for scripts (default: ./scripts)
  --force              Force reseed (drop and recreate schema)
  --help, -h           Show this help message

EXAMPLES:
  # Seed all scripts in ./scripts
  python scripts/seed.py

  # Seed only audio scripts
  python scripts/seed.py --directory=./scripts/audio

  # Force reseed (recreate schema, required after changing the embedding model)
  python scripts/seed.py --force

CONFIGURATION:
  Set these environment variables (or put them in .env):
    DATABASE_URL          - PostgreSQL connection URI (pgvector enabled)
    DATABASE_AUTH_TOKEN   - Database password / token
    OPENAI_API_KEY        - OpenAI API key for embeddings
  Optional:
    EMBEDDING_MODEL       - default: text-embedding-3-small
    EMBEDDING_DIMENSIONS  - default: 1536
    SCRIPT_EXTENSIONS     - comma separated, default: .ts
"""


@dataclass
class ParsedArgs:
    directory: str = DEFAULT_DIRECTORY
    force: bool = False
    show_help: bool = False


@dataclass
class SeedingStatistics:
    processed: int
    inserted: int
    updated: int
    failed: int
    total_tokens: int
    categories: Dict[str, int] = field(default_factory=dict)
    duration_ms: float = 0.0


@click.command(context_settings={"help_option_names": []})
@click.option("--directory", type=str, default=DEFAULT_DIRECTORY, help="Directory to scan for scripts")
@click.option("--force", is_flag=True, default=False, help="Drop and recreate the schema before seeding")
@click.option("-h", "--help", "show_help", is_flag=True, default=False, help="Show this help message")
def seed_command(directory: str, force: bool, show_help: bool) -> ParsedArgs:
    """Seed the database with script metadata and embeddings."""
    return ParsedArgs(directory=directory, force=force, show_help=show_help)


def parse_args(argv: Sequence[str]) -> ParsedArgs:
    """
    Parse command-line arguments.

    --help / -h wins over every other flag.

    Raises:
        ConfigurationError: On unknown options or missing option values.
    """
    argv = list(argv)
    if "--help" in argv or "-h" in argv:
        return ParsedArgs(show_help=True)

    try:
        return seed_command.main(args=argv, prog_name="seed", standalone_mode=False)
    except click.ClickException as e:
        raise ConfigurationError(e.format_message()) from e


def validate_directory(directory: str) -> Path:
    """
    Check the scan root before any network I/O.

    Raises:
        DiscoveryError: If the path is empty, does not exist or is not a directory.
    """
    if not directory or not directory.strip():
        raise DiscoveryError("Invalid directory: path is empty")
    path = Path(directory)
    if not path.exists():
        raise DiscoveryError(f"Invalid directory: {directory} does not exist")
    if not path.is_dir():
        raise DiscoveryError(f"Invalid directory: {directory} is not a directory")
    return path


def format_statistics(stats: SeedingStatistics) -> str:
    """Format statistics for display."""
    lines = [
        "",
        "✓ Seeding complete",
        "",
        "Statistics:",
        f"  Processed: {stats.processed}",
        f"  Inserted: {stats.inserted}",
        f"  Updated: {stats.updated}",
        f"  Failed: {stats.failed}",
        "  Categories:",
    ]
    for category, count in sorted(stats.categories.items()):
        lines.append(f"    {category}: {count}")
    lines.append(f"  Total tokens: {stats.total_tokens:,}")
    lines.append(f"  Time: {stats.duration_ms / 1000:.1f}s")
    return "\n".join(lines) + "\n"


def format_errors(errors: List[FileFailure], limit: int = MAX_ERRORS_SHOWN) -> str:
    """First few per-file errors, with a count of the rest."""
    if not errors:
        return ""
    lines = ["Errors:"]
    for error in errors[:limit]:
        lines.append(f"  - {error}")
    if len(errors) > limit:
        lines.append(f"  ... and {len(errors) - limit} more")
    return "\n".join(lines)


def print_progress(current: int, total: int) -> None:
    print(f"[{current}/{total}] Seeding scripts...")


def run(parsed: ParsedArgs, environ: Optional[Dict[str, str]] = None) -> int:
    """
    Run the seeding pipeline.

    Returns:
        Process exit code: 0 on success (including nothing to seed), 1 on a fatal error.
    """
    if parsed.show_help:
        print(HELP_TEXT)
        return 0

    start_time = time.monotonic()
    db = None

    try:
        directory = validate_directory(parsed.directory)

        print("Loading configuration...")
        settings = Settings.from_env(environ)
        logging.getLogger().setLevel(settings.log_level)

        print("Initializing components...")
        embedder = EmbeddingClient.from_settings(settings)
        db = DatabaseConnection.from_settings(settings)
        db.connect()

        seeder = DatabaseSeeder(
            ScriptStore(db),
            ScriptAnalyzer(directory),
            embedder,
            extensions=settings.script_extensions,
            ignore_patterns=settings.ignore_patterns,
            on_progress=print_progress,
        )

        print("\nInitializing database schema...")
        if parsed.force:
            print("Dropping existing schema (--force)...")
        seeder.initialize_schema(force=parsed.force)
        print("✓ Schema ready\n")

        print(f"Seeding scripts in {directory}...")
        result = seeder.seed_scripts(directory)

        if result.processed == 0:
            print("No scripts to seed.")
            return 0

        stats = seeder.get_stats()
        statistics = SeedingStatistics(
            processed=result.processed,
            inserted=result.inserted,
            updated=result.updated,
            failed=result.failed,
            total_tokens=stats.total_tokens,
            categories=stats.categories,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )
        print(format_statistics(statistics))

        errors_text = format_errors(result.errors)
        if errors_text:
            print(errors_text)
        return 0

    except SeedError as e:
        print(f"\n❌ {e.kind}: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        return 1
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"\n❌ Error: {e}")
        return 1
    finally:
        if db is not None:
            db.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        parsed = parse_args(sys.argv[1:] if argv is None else argv)
    except ConfigurationError as e:
        print(f"❌ {e.kind}: {e}")
        print("Run with --help for usage.")
        sys.exit(1)

    sys.exit(run(parsed))


if __name__ == "__main__":
    main()
