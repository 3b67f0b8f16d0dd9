#!/usr/bin/env python3
"""
Error taxonomy for the script indexer.

Pre-flight errors (configuration, discovery) abort the run. Per-file errors
(analysis, embedding, single-row store failures) are recorded by the seeder
and reported at the end.
"""

from typing import Optional


class SeedError(Exception):
    """Base class for all indexer errors."""

    kind = "SeedError"


class ConfigurationError(SeedError):
    """Missing or invalid environment variables or CLI arguments."""

    kind = "ConfigurationError"


class DiscoveryError(SeedError):
    """The scan root is empty, does not exist or is not a directory."""

    kind = "DiscoveryError"


class AnalysisError(SeedError):
    """A file could not be read or decoded as text."""

    kind = "AnalysisError"

    def __init__(self, path: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
        self.cause = cause


class EmbeddingError(SeedError):
    """The embedding service did not return a usable vector."""

    kind = "EmbeddingError"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class StoreError(SeedError):
    """Connection or statement failure against the database."""

    kind = "StoreError"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
