"""In-memory TTL cache for read-only query results.

Entries are keyed by the normalized statement text plus an order-independent
signature of its parameters. Expired entries are evicted lazily on lookup;
there is no background sweep. Entries are never mutated, only replaced.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import hashlib
import json
import re
import threading
import time
from typing import TYPE_CHECKING, Final

from fastmcp.utilities.logging import get_logger

if TYPE_CHECKING:
    from mssql_mcp.execute.models import QueryResult

_logger = get_logger(__name__)

DEFAULT_TTL_SECONDS: Final[float] = 300.0
DEFAULT_MAX_ENTRIES: Final[int] = 256

# Whitespace runs, plus the tokens whose whitespace is significant: string
# literals, bracketed and quoted identifiers, and comments. Unterminated
# literals run to the end of the text.
_LAYOUT_TOKENS: Final[re.Pattern[str]] = re.compile(
    r"N?'(?:[^']|'')*(?:'|\Z)"
    r"|\[(?:[^\]]|\]\])*(?:\]|\Z)"
    r'|"(?:[^"]|"")*(?:"|\Z)'
    r"|--[^\n]*(?:\n|\Z)"
    r"|/\*.*?(?:\*/|\Z)"
    r"|\s+",
    re.DOTALL,
)
_MUTATION_KEYWORDS: Final[re.Pattern[str]] = re.compile(
    r"\b(INSERT|UPDATE|DELETE|MERGE|INTO|EXEC|EXECUTE|CREATE|ALTER|DROP|TRUNCATE"
    r"|GRANT|REVOKE|DENY|BACKUP|RESTORE|BULK|DBCC|SET)\b",
    re.IGNORECASE,
)
_NON_DETERMINISTIC: Final[re.Pattern[str]] = re.compile(
    r"\b(NEWID|NEWSEQUENTIALID|RAND|CRYPT_GEN_RANDOM|GETDATE|GETUTCDATE|SYSDATETIME"
    r"|SYSUTCDATETIME|SYSDATETIMEOFFSET|CURRENT_TIMESTAMP)\b|NEXT\s+VALUE\s+FOR",
    re.IGNORECASE,
)


def normalize_statement(sql: str) -> str:
    """Collapse whitespace between tokens and drop a trailing semicolon.

    Literals, identifiers and comments are kept byte for byte; case is preserved.
    """

    def _collapse(match: re.Match[str]) -> str:
        token = match.group(0)
        return " " if token.isspace() else token

    return _LAYOUT_TOKENS.sub(_collapse, sql).strip().removesuffix(";").rstrip()


def is_read_only(sql: str) -> bool:
    """True when the statement starts with SELECT and has no mutation keywords."""
    text = sql.strip()
    if not re.match(r"SELECT\b", text, re.IGNORECASE):
        return False
    return _MUTATION_KEYWORDS.search(text) is None


def is_cacheable(sql: str) -> bool:
    """Read-only and free of non-deterministic functions."""
    return is_read_only(sql) and _NON_DETERMINISTIC.search(sql) is None


def cache_key(sql: str, parameters: Mapping[str, object] | None = None) -> str:
    """Derive a stable key from statement text and parameter bindings.

    Named parameters are sorted so binding order does not matter; each value is
    tagged with its type so ``1`` and ``"1"`` produce different keys.
    """
    signature = sorted(
        (name.lstrip("@"), type(value).__name__, repr(value))
        for name, value in (parameters or {}).items()
    )
    payload = json.dumps([normalize_statement(sql), signature], separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Snapshot of a result and the monotonic time it was stored."""

    result: QueryResult
    created_at: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    entries: int
    hits: int
    misses: int
    ttl_seconds: float


class QueryCache:
    """TTL cache of `QueryResult` snapshots."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> QueryResult | None:
        """Return the cached result, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.created_at >= self.ttl_seconds:
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.result

    def put(self, key: str, result: QueryResult) -> None:
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                # dicts keep insertion order: the first key is the oldest entry
                del self._entries[next(iter(self._entries))]
            self._entries[key] = CacheEntry(result=result, created_at=self._clock())

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            _logger.info("Query cache cleared (%d entries)", count)
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        return CacheStats(
            entries=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            ttl_seconds=self.ttl_seconds,
        )
