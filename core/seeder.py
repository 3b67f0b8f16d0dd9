#!/usr/bin/env python3
"""
Database seeder: discovers, analyzes, embeds and stores scripts.

Discovers script files, analyzes them, generates embeddings for new or
changed content and upserts the results. Files are processed one at a time
in discovery order; a failing file is recorded and skipped.
"""

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from config.settings import IGNORE_PATTERNS, SCRIPT_EXTENSIONS
from core.analyzer import ScriptAnalyzer, relative_script_path
from core.errors import AnalysisError, DiscoveryError, EmbeddingError, StoreError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SeederState(Enum):
    IDLE = "idle"
    SCHEMA_READY = "schema_ready"
    DISCOVERING = "discovering"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class FileFailure:
    """A per-file error recorded during seeding."""

    path: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind} {self.path}: {self.message}"


@dataclass
class SeedingResult:
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    embedded: int = 0
    reused: int = 0
    errors: List[FileFailure] = field(default_factory=list)

    def record_failure(self, path: str, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error)
        self.errors.append(FileFailure(path=path, kind=type(error).__name__, message=message))
        self.failed += 1


@dataclass
class SeederStats:
    total_scripts: int = 0
    avg_tokens: float = 0.0
    total_tokens: int = 0
    categories: Dict[str, int] = field(default_factory=dict)


class DatabaseSeeder:
    """Seed the scripts table from a directory of script files."""

    def __init__(self, store, analyzer: ScriptAnalyzer, embedder=None,
                 extensions: Iterable[str] = SCRIPT_EXTENSIONS,
                 ignore_patterns: Iterable[str] = IGNORE_PATTERNS,
                 on_progress: Optional[ProgressCallback] = None):
        """
        Initialize the seeder.

        Args:
            store: ScriptStore used for all database access.
            analyzer: ScriptAnalyzer for metadata extraction.
            embedder: EmbeddingClient (anything with embed(text), model, dimensions).
                Only needed for schema initialization and seeding; discovery
                and pruning work without one.
            extensions: File suffixes to index.
            ignore_patterns: fnmatch patterns; a path is skipped if any of its
                segments matches.
            on_progress: Called with (current, total) after each file.
        """
        if store is None:
            raise ValueError("Invalid config: store is required")
        if analyzer is None:
            raise ValueError("Invalid config: analyzer is required")

        self.store = store
        self.analyzer = analyzer
        self.embedder = embedder
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.ignore_patterns = tuple(ignore_patterns)
        self.on_progress = on_progress
        self.state = SeederState.IDLE
        self.progress: Tuple[int, int] = (0, 0)

    def _require_embedder(self) -> None:
        if self.embedder is None:
            raise ValueError("Invalid config: embedder is required")

    def initialize_schema(self, force: bool = False) -> None:
        """
        Create the schema (idempotent). With force, drop and recreate first.

        Raises:
            StoreError: Fatal; the seeder moves to FAILED. Raised as well when
                the stored rows were embedded with another model or dimension.
        """
        self._require_embedder()
        try:
            self.store.initialize_schema(
                self.embedder.dimensions, force=force, model=self.embedder.model
            )
        except StoreError:
            self.state = SeederState.FAILED
            raise
        self.state = SeederState.SCHEMA_READY

    def _is_ignored(self, name: str) -> bool:
        if name.startswith("."):
            return True
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore_patterns)

    def discover_scripts(self, root_dir: Union[str, Path]) -> List[Path]:
        """
        Find all script files under root_dir.

        Hidden entries and ignored directories are skipped. The result is
        sorted by relative path and contains no duplicates.

        Raises:
            DiscoveryError: If root_dir is empty, does not exist or is not a directory.
        """
        if not str(root_dir).strip():
            raise DiscoveryError("Directory path is empty")
        root = Path(root_dir)
        if not root.exists():
            raise DiscoveryError(f"Directory does not exist: {root}")
        if not root.is_dir():
            raise DiscoveryError(f"Not a directory: {root}")

        found: Dict[str, Path] = {}
        for current, dirs, files in os.walk(root):
            # Prune in place so os.walk does not descend
            dirs[:] = [d for d in dirs if not self._is_ignored(d)]
            for filename in files:
                if self._is_ignored(filename):
                    continue
                if not filename.lower().endswith(self.extensions):
                    continue
                full_path = Path(current) / filename
                found.setdefault(full_path.relative_to(root).as_posix(), full_path)

        return [found[key] for key in sorted(found)]

    def _report_progress(self, current: int, total: int) -> None:
        self.progress = (current, total)
        if self.on_progress is None:
            return
        try:
            self.on_progress(current, total)
        except Exception as e:
            logger.warning(f"Progress callback raised {type(e).__name__}: {e}")

    def _process_file(self, path: Path, root: Path, result: SeedingResult) -> None:
        metadata = self.analyzer.analyze(path, root=root)

        stored_hash = self.store.get_content_hash(metadata.path)
        if stored_hash is not None and stored_hash == metadata.content_hash:
            if self.store.refresh_metadata(metadata):
                logger.debug(f"Unchanged, reused embedding: {metadata.path}")
                result.reused += 1
                result.updated += 1
                return

        embedding = self.embedder.embed(metadata.embedding_text())
        result.embedded += 1

        if self.store.upsert_script(metadata, embedding, self.embedder.model):
            result.inserted += 1
        else:
            result.updated += 1

    def seed_scripts(self, root_dir: Union[str, Path]) -> SeedingResult:
        """
        Seed the database with scripts from root_dir.

        Per file: analyze, compare content hash with the stored one, reuse the
        stored embedding if unchanged, otherwise embed, then upsert.

        Returns:
            SeedingResult with processed = inserted + updated + failed.

        Raises:
            DiscoveryError: If root_dir is invalid.
            StoreError: If the database connection is lost mid-run.
        """
        self._require_embedder()
        result = SeedingResult()

        self.state = SeederState.DISCOVERING
        try:
            script_paths = self.discover_scripts(root_dir)
        except DiscoveryError:
            self.state = SeederState.FAILED
            raise

        root = Path(root_dir)
        total = len(script_paths)
        logger.info(f"Discovered {total} script(s) in {root}")
        self.state = SeederState.PROCESSING
        self.progress = (0, total)

        for index, path in enumerate(script_paths, 1):
            try:
                self._process_file(path, root, result)
            except (AnalysisError, EmbeddingError) as e:
                logger.warning(f"Skipping {path}: {e}")
                result.record_failure(self._relative(path, root), e)
            except StoreError as e:
                if not self.store.is_healthy:
                    self.state = SeederState.FAILED
                    raise
                logger.warning(f"Failed to store {path}: {e}")
                result.record_failure(self._relative(path, root), e)
            result.processed += 1
            self._report_progress(index, total)

        self.state = SeederState.COMPLETE
        logger.info(
            f"Seeding complete: {result.inserted} inserted, {result.updated} updated, "
            f"{result.failed} failed"
        )
        return result

    def get_stats(self) -> SeederStats:
        """Aggregate statistics from the persisted rows."""
        return SeederStats(**self.store.get_stats())

    def prune_missing(self, root_dir: Union[str, Path], dry_run: bool = False) -> List[str]:
        """
        Delete rows whose file is no longer discovered under root_dir.

        This is a maintenance operation; seeding never deletes rows.

        Returns:
            The stale paths (deleted unless dry_run).
        """
        discovered = self.discover_scripts(root_dir)
        root = Path(root_dir)
        current = {self._relative(path, root) for path in discovered}
        stale = [path for path in self.store.list_paths() if path not in current]
        if stale and not dry_run:
            self.store.delete_paths(stale)
        return stale

    @staticmethod
    def _relative(path: Path, root: Path) -> str:
        return relative_script_path(path, root).as_posix()
