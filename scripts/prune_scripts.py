#!/usr/bin/env python3
"""
Remove index rows for scripts that no longer exist on disk.

Seeding never deletes rows; run this explicitly with the same --directory
that was used for seeding (stored paths are relative to that root).
"""

import logging
import os
import sys

import click

# Ensure project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import DATABASE_VARIABLES, DEFAULT_DIRECTORY, Settings
from core.analyzer import ScriptAnalyzer
from core.errors import SeedError
from core.seeder import DatabaseSeeder
from database.connection import DatabaseConnection
from database.script_store import ScriptStore

logger = logging.getLogger(__name__)


@click.command()
@click.option("--directory", type=str, default=DEFAULT_DIRECTORY, help="Root that was seeded")
@click.option("--dry-run", is_flag=True, default=False, help="List stale rows without deleting them")
def main(directory: str, dry_run: bool) -> None:
    """Delete rows whose script file is gone."""
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(message)s')

    db = None
    try:
        settings = Settings.from_env(required=DATABASE_VARIABLES)
        db = DatabaseConnection.from_settings(settings)
        db.connect()

        seeder = DatabaseSeeder(
            ScriptStore(db),
            ScriptAnalyzer(directory),
            extensions=settings.script_extensions,
            ignore_patterns=settings.ignore_patterns,
        )
        stale = seeder.prune_missing(directory, dry_run=dry_run)

        action = "Would delete" if dry_run else "Deleted"
        print(f"{action} {len(stale)} stale row(s)")
        for path in stale:
            print(f"  - {path}")
    except SeedError as e:
        print(f"\n❌ {e.kind}: {e}")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


if __name__ == "__main__":
    main()
