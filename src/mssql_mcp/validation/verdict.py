"""Validation verdicts shared by the identifier validator and statement guard."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mssql_mcp.exceptions import QueryValidationError


class ValidationRule(str, Enum):
    """Rule violated by a rejected input."""

    EMPTY_STATEMENT = "empty_statement"
    IDENTIFIER_CHARSET = "identifier_charset"
    ORDER_BY_GRAMMAR = "order_by_grammar"
    BLOCKED_CONSTRUCT = "blocked_construct"
    WHERE_CLAUSE = "where_clause"
    PAGE_BOUNDS = "page_bounds"
    PARAMETER_NAME = "parameter_name"
    PARAMETER_VALUE = "parameter_value"
    SQL_TYPE = "sql_type"


@dataclass(frozen=True, slots=True)
class ValidationVerdict:
    """Pass, or reject with the violated rule and a descriptive message."""

    ok: bool
    rule: ValidationRule | None = None
    message: str | None = None

    @classmethod
    def passed(cls) -> ValidationVerdict:
        return _PASSED

    @classmethod
    def rejected(cls, rule: ValidationRule, message: str) -> ValidationVerdict:
        return cls(ok=False, rule=rule, message=message)

    def raise_if_rejected(self) -> None:
        """Raise `QueryValidationError` when this verdict is a rejection."""
        if not self.ok:
            raise QueryValidationError(self.message or "Validation failed", rule=self.rule)


_PASSED = ValidationVerdict(ok=True)
