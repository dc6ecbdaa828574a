"""Statement guard: deny-list scan for server-administration constructs.

The guard is pattern based, not parse based. Data and schema operations on
user objects (SELECT/INSERT/UPDATE/DELETE/CREATE/ALTER/DROP) are allowed;
only instance-level administration is blocked. The deny-list is data: a
tuple of tagged constructs that callers can extend.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import re
from typing import Final

from fastmcp.utilities.logging import get_logger

from mssql_mcp.validation.verdict import ValidationRule, ValidationVerdict

_logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BlockedConstruct:
    """A denied token or pattern with the category it belongs to."""

    tag: str
    pattern: re.Pattern[str]
    label: str

    @classmethod
    def token(cls, tag: str, token: str) -> BlockedConstruct:
        """Block a literal token anywhere in the text, case-insensitively."""
        return cls(tag=tag, pattern=re.compile(re.escape(token), re.IGNORECASE), label=token)

    @classmethod
    def regex(cls, tag: str, pattern: str, label: str) -> BlockedConstruct:
        return cls(tag=tag, pattern=re.compile(pattern, re.IGNORECASE), label=label)


DEFAULT_DENY_LIST: Final[tuple[BlockedConstruct, ...]] = (
    BlockedConstruct.token("shutdown", "SHUTDOWN"),
    BlockedConstruct.token("shell", "XP_CMDSHELL"),
    BlockedConstruct.token("reconfigure", "SP_CONFIGURE"),
    BlockedConstruct.token("reconfigure", "RECONFIGURE"),
    BlockedConstruct.regex(
        "reconfigure", r"ALTER\s+SERVER\s+CONFIGURATION", "ALTER SERVER CONFIGURATION"
    ),
    BlockedConstruct.token("registry", "XP_REGWRITE"),
    BlockedConstruct.token("registry", "XP_REGDELETEKEY"),
    BlockedConstruct.token("registry", "XP_REGDELETEVALUE"),
    BlockedConstruct.token("filesystem", "XP_DIRTREE"),
    BlockedConstruct.token("filesystem", "XP_FILEEXIST"),
    BlockedConstruct.token("ole_automation", "SP_OACREATE"),
    BlockedConstruct.token("ole_automation", "SP_OAMETHOD"),
    BlockedConstruct.token("extended_procedure", "SP_ADDEXTENDEDPROC"),
    BlockedConstruct.token("server_role", "SP_ADDSRVROLEMEMBER"),
    BlockedConstruct.regex("session", r"\bKILL\s+\d+", "KILL <session>"),
)


class StatementGuard:
    """Reject statements containing any construct on the deny-list."""

    def __init__(self, deny_list: Iterable[BlockedConstruct] = DEFAULT_DENY_LIST) -> None:
        self._deny_list: tuple[BlockedConstruct, ...] = tuple(deny_list)

    @classmethod
    def with_extra_tokens(cls, tokens: Iterable[str]) -> StatementGuard:
        """Build a guard from the default deny-list plus extra literal tokens."""
        extra = [BlockedConstruct.token("custom", t) for t in tokens if t.strip()]
        return cls((*DEFAULT_DENY_LIST, *extra))

    @property
    def deny_list(self) -> tuple[BlockedConstruct, ...]:
        return self._deny_list

    def check_statement(self, raw_text: str) -> ValidationVerdict:
        if not raw_text.strip():
            return ValidationVerdict.rejected(
                ValidationRule.EMPTY_STATEMENT, "Query cannot be empty"
            )
        for construct in self._deny_list:
            if construct.pattern.search(raw_text):
                _logger.warning(
                    "Blocked statement containing %s construct (%s)",
                    construct.tag,
                    construct.label,
                )
                return ValidationVerdict.rejected(
                    ValidationRule.BLOCKED_CONSTRUCT,
                    f"Statement contains a blocked server-administration construct: "
                    f"{construct.label} ({construct.tag})",
                )
        return ValidationVerdict.passed()

    def check_where_clause(self, clause: str) -> ValidationVerdict:
        """Check a WHERE fragment: deny-list scan plus no separators or comments.

        Values belong in bound parameters; the fragment may only be a single
        predicate expression.
        """
        verdict = self.check_statement(clause)
        if not verdict.ok:
            return verdict
        if _WHERE_FORBIDDEN.search(clause):
            _logger.warning("Rejected WHERE clause containing a separator or comment")
            return ValidationVerdict.rejected(
                ValidationRule.WHERE_CLAUSE,
                "Invalid WHERE clause. Statement separators (;) and comments (--, /*) are not "
                "allowed; pass values as parameters.",
            )
        return ValidationVerdict.passed()


_WHERE_FORBIDDEN: Final[re.Pattern[str]] = re.compile(r";|--|/\*")
