#!/usr/bin/env python3
"""
SQL statement validator for the script indexer.
Checks that statements sent to the database are single, parameterized statements.
"""

import logging
from typing import Optional, Sequence

import sqlglot

logger = logging.getLogger(__name__)

PLACEHOLDER = "%s"

# pgvector operators that sqlglot does not know about
VECTOR_OPERATORS = ("<=>", "<->", "<#>")


def count_placeholders(statement: str) -> int:
    """Count psycopg2-style positional placeholders."""
    return statement.replace("%%", "").count(PLACEHOLDER)


def _count_statements(statement: str) -> int:
    query_for_parsing = statement.replace(PLACEHOLDER, "?")
    for operator in VECTOR_OPERATORS:
        query_for_parsing = query_for_parsing.replace(operator, "+")

    try:
        parsed = sqlglot.parse(query_for_parsing, read="postgres")
        return len([expression for expression in parsed if expression is not None])
    except Exception as e:
        logger.debug(f"SQL parsing warning, using basic statement split: {e}")
        return len([part for part in statement.split(";") if part.strip()])


def validate_statement(statement: str, params: Optional[Sequence] = None) -> tuple[bool, Optional[str]]:
    """
    Validate a statement before execution.

    Checks:
    1. Statement is not empty
    2. Exactly one statement (no semicolon-chained statements)
    3. Number of %s placeholders matches the number of parameters

    Args:
        statement: SQL statement with %s placeholders.
        params: Positional parameters for the placeholders.

    Returns:
        tuple: (is_valid, error_message); error_message is None when valid.
    """
    if not statement or not statement.strip():
        return False, "Empty SQL statement"

    if _count_statements(statement) > 1:
        return False, "Multiple SQL statements detected. Execute one statement at a time."

    placeholder_count = count_placeholders(statement)
    params_count = len(params) if params is not None else 0
    if placeholder_count != params_count:
        return False, (
            f"Placeholder mismatch: SQL has {placeholder_count} %s placeholders "
            f"but {params_count} parameter(s) were given"
        )

    return True, None
