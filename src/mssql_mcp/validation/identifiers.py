"""Identifier and ORDER BY validation.

Identifiers (schema, table, procedure and parameter names) cannot be sent as
bound parameters, so they are whitelisted before being interpolated into SQL
text. Nothing is escaped or auto-corrected: a fragment either matches the
grammar in full or is rejected.
"""

from __future__ import annotations

import re
from typing import Final

from fastmcp.utilities.logging import get_logger

from mssql_mcp.validation.verdict import ValidationRule, ValidationVerdict

_logger = get_logger(__name__)

IDENTIFIER_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9_]+")

# Comma-separated list of plain/bracketed dotted column references, each
# optionally followed by ASC or DESC.
ORDER_BY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[\[\]A-Za-z0-9_.]+(?:\s+(?:ASC|DESC))?(?:\s*,\s*[\[\]A-Za-z0-9_.]+(?:\s+(?:ASC|DESC))?)*",
    re.IGNORECASE,
)

# Base type name with an optional (length), (max) or (precision, scale) suffix.
SQL_TYPE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[A-Za-z][A-Za-z0-9_]*(?:\s*\(\s*(?:\d+|max)(?:\s*,\s*\d+)?\s*\))?",
    re.IGNORECASE,
)


def validate_identifier(name: str, kind: str = "identifier") -> ValidationVerdict:
    """Validate a schema/table/column-style name against ``^[A-Za-z0-9_]+$``."""
    if IDENTIFIER_PATTERN.fullmatch(name):
        return ValidationVerdict.passed()
    _logger.warning("Rejected %s name: %r", kind, name[:100])
    return ValidationVerdict.rejected(
        ValidationRule.IDENTIFIER_CHARSET,
        f"Invalid {kind} name {name!r}. Only letters, numbers, and underscores are allowed.",
    )


def validate_order_by(clause: str) -> ValidationVerdict:
    """Validate an ORDER BY clause (without the ORDER BY keyword)."""
    if ORDER_BY_PATTERN.fullmatch(clause.strip()):
        return ValidationVerdict.passed()
    _logger.warning("Rejected ORDER BY clause: %r", clause[:100])
    return ValidationVerdict.rejected(
        ValidationRule.ORDER_BY_GRAMMAR,
        "Invalid ORDER BY clause. Only column names, commas, spaces, ASC, and DESC are allowed.",
    )


def validate_sql_type(type_name: str) -> ValidationVerdict:
    """Validate a declared SQL type such as ``int``, ``nvarchar(max)``, ``decimal(18, 2)``."""
    if SQL_TYPE_PATTERN.fullmatch(type_name.strip()):
        return ValidationVerdict.passed()
    return ValidationVerdict.rejected(
        ValidationRule.SQL_TYPE,
        f"Invalid SQL type {type_name!r}. Expected a type name with optional length, "
        "for example int, nvarchar(100), nvarchar(max) or decimal(18, 2).",
    )


def quote_identifier(name: str) -> str:
    """Bracket-quote an identifier that has already passed validation."""
    return f"[{name}]"
