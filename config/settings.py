#!/usr/bin/env python3
"""
Centralized configuration for the script indexer.
Single source of truth for database, OpenAI, and discovery settings.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Tuple

from dotenv import load_dotenv

from core.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

# -------------------------------------------------------------------
# Database Configuration
# -------------------------------------------------------------------
DB_CONNECT_TIMEOUT = 10
DB_STATEMENT_TIMEOUT_MS = 30000

# -------------------------------------------------------------------
# OpenAI Configuration
# -------------------------------------------------------------------
EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536
EMBEDDING_BATCH_SIZE = 64
EMBEDDING_MAX_ATTEMPTS = 4
# text-embedding-3-small accepts 8191 tokens; 24k chars stays under that for code
EMBEDDING_MAX_INPUT_CHARS = 24000
REQUEST_TIMEOUT = 30.0

# -------------------------------------------------------------------
# Discovery Configuration
# -------------------------------------------------------------------
DEFAULT_DIRECTORY = "./scripts"
SCRIPT_EXTENSIONS = (".ts",)
IGNORE_PATTERNS = (
    "node_modules",
    "__pycache__",
    "dist",
    "build",
    "coverage",
    "*.egg-info",
)

LOG_LEVEL = "WARNING"

DATABASE_VARIABLES = ("DATABASE_URL", "DATABASE_AUTH_TOKEN")
REQUIRED_VARIABLES = DATABASE_VARIABLES + ("OPENAI_API_KEY",)


def _split_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _positive_number(env: Mapping[str, str], name: str, default, cast=int):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, built once at startup and passed down.

    Secrets come from the environment (or a .env file), never from flags.
    """

    database_url: str
    database_auth_token: str = field(repr=False)
    openai_api_key: str = field(repr=False)
    embedding_model: str = EMBEDDING_MODEL
    embedding_dimensions: int = EMBEDDING_DIMENSIONS
    embedding_batch_size: int = EMBEDDING_BATCH_SIZE
    embedding_max_attempts: int = EMBEDDING_MAX_ATTEMPTS
    embedding_max_input_chars: int = EMBEDDING_MAX_INPUT_CHARS
    request_timeout: float = REQUEST_TIMEOUT
    db_connect_timeout: int = DB_CONNECT_TIMEOUT
    db_statement_timeout_ms: int = DB_STATEMENT_TIMEOUT_MS
    script_extensions: Tuple[str, ...] = SCRIPT_EXTENSIONS
    ignore_patterns: Tuple[str, ...] = IGNORE_PATTERNS
    log_level: str = LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None,
                 required: Sequence[str] = REQUIRED_VARIABLES) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
            required: Variables that must be set. Database-only commands
                pass DATABASE_VARIABLES.

        Raises:
            ConfigurationError: If a required variable is missing or a
                numeric variable is invalid.
        """
        env = os.environ if environ is None else environ

        missing = [name for name in required if not env.get(name, "").strip()]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}. "
                "Add them to your environment or the .env file."
            )

        extensions = _split_list(env.get("SCRIPT_EXTENSIONS")) or SCRIPT_EXTENSIONS
        extensions = tuple(ext if ext.startswith(".") else f".{ext}" for ext in extensions)

        return cls(
            database_url=env.get("DATABASE_URL", "").strip(),
            database_auth_token=env.get("DATABASE_AUTH_TOKEN", "").strip(),
            openai_api_key=env.get("OPENAI_API_KEY", "").strip(),
            embedding_model=env.get("EMBEDDING_MODEL", "").strip() or EMBEDDING_MODEL,
            embedding_dimensions=_positive_number(env, "EMBEDDING_DIMENSIONS", EMBEDDING_DIMENSIONS),
            embedding_batch_size=_positive_number(env, "EMBEDDING_BATCH_SIZE", EMBEDDING_BATCH_SIZE),
            embedding_max_attempts=_positive_number(env, "EMBEDDING_MAX_ATTEMPTS", EMBEDDING_MAX_ATTEMPTS),
            embedding_max_input_chars=_positive_number(
                env, "EMBEDDING_MAX_INPUT_CHARS", EMBEDDING_MAX_INPUT_CHARS
            ),
            request_timeout=_positive_number(env, "REQUEST_TIMEOUT", REQUEST_TIMEOUT, cast=float),
            db_connect_timeout=_positive_number(env, "DB_CONNECT_TIMEOUT", DB_CONNECT_TIMEOUT),
            db_statement_timeout_ms=_positive_number(
                env, "DB_STATEMENT_TIMEOUT_MS", DB_STATEMENT_TIMEOUT_MS
            ),
            script_extensions=extensions,
            ignore_patterns=IGNORE_PATTERNS + _split_list(env.get("SCRIPT_IGNORE_PATTERNS")),
            log_level=env.get("LOG_LEVEL", "").strip().upper() or LOG_LEVEL,
        )
