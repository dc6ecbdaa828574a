"""Validation layer: identifier whitelisting and the statement guard.

Pure functions and small value types; no database access.
"""

from __future__ import annotations

from .guard import DEFAULT_DENY_LIST, BlockedConstruct, StatementGuard
from .identifiers import (
    quote_identifier,
    validate_identifier,
    validate_order_by,
    validate_sql_type,
)
from .verdict import ValidationRule, ValidationVerdict

__all__ = [
    "DEFAULT_DENY_LIST",
    "BlockedConstruct",
    "StatementGuard",
    "ValidationRule",
    "ValidationVerdict",
    "quote_identifier",
    "validate_identifier",
    "validate_order_by",
    "validate_sql_type",
]
