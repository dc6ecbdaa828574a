from __future__ import annotations

import pytest

from mssql_mcp.execute.cache import (
    QueryCache,
    cache_key,
    is_cacheable,
    is_read_only,
    normalize_statement,
)
from mssql_mcp.execute.models import QueryResult


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _result(value: int = 1) -> QueryResult:
    return QueryResult(recordset=[{"x": value}], recordsets=[[{"x": value}]], elapsed_ms=1.0)


def test_entry_served_until_ttl_expires() -> None:
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=300, clock=clock)
    cache.put("k", _result())

    clock.now = 1299.5
    hit = cache.get("k")
    assert hit is not None
    assert hit.recordset == [{"x": 1}]

    clock.now = 1300.0
    assert cache.get("k") is None
    # expired entry is evicted on lookup
    assert len(cache) == 0


def test_stats_count_hits_and_misses() -> None:
    cache = QueryCache(clock=FakeClock())
    cache.put("k", _result())
    cache.get("k")
    cache.get("k")
    cache.get("missing")
    stats = cache.stats()
    assert (stats.entries, stats.hits, stats.misses) == (1, 2, 1)
    assert stats.ttl_seconds == 300.0


def test_clear_returns_removed_count() -> None:
    cache = QueryCache()
    cache.put("a", _result(1))
    cache.put("b", _result(2))
    assert cache.clear() == 2
    assert cache.get("a") is None
    assert cache.clear() == 0


def test_oldest_entry_evicted_at_capacity() -> None:
    cache = QueryCache(max_entries=2)
    cache.put("a", _result(1))
    cache.put("b", _result(2))
    cache.put("c", _result(3))
    assert cache.get("a") is None
    assert cache.get("b") is not None
    assert cache.get("c") is not None


def test_put_replaces_existing_entry() -> None:
    cache = QueryCache()
    cache.put("a", _result(1))
    cache.put("a", _result(2))
    hit = cache.get("a")
    assert hit is not None and hit.recordset == [{"x": 2}]
    assert len(cache) == 1


def test_key_ignores_parameter_order_and_at_prefix() -> None:
    sql = "SELECT * FROM t WHERE a = @a AND b = @b"
    assert cache_key(sql, {"a": 1, "b": "x"}) == cache_key(sql, {"b": "x", "a": 1})
    assert cache_key(sql, {"a": 1}) == cache_key(sql, {"@a": 1})


def test_key_distinguishes_value_types() -> None:
    sql = "SELECT * FROM t WHERE a = @a"
    assert cache_key(sql, {"a": 1}) != cache_key(sql, {"a": "1"})
    assert cache_key(sql, {"a": 1}) != cache_key(sql, {"a": True})
    assert cache_key(sql, {"a": 1}) != cache_key(sql, {"a": 2})


def test_key_ignores_whitespace_layout() -> None:
    assert cache_key("SELECT  1\n  AS x;") == cache_key("SELECT 1 AS x")
    assert cache_key("SELECT 1 AS x") != cache_key("SELECT 1 AS y")


def test_normalize_statement() -> None:
    assert normalize_statement("  SELECT\t*\nFROM t ;  ") == "SELECT * FROM t"


@pytest.mark.parametrize(
    "sql",
    ["SELECT 1", "select * from dbo.Orders where Id = @id", "  SELECT name FROM sys.databases"],
)
def test_plain_selects_are_read_only(sql: str) -> None:
    assert is_read_only(sql)
    assert is_cacheable(sql)


@pytest.mark.parametrize(
    "sql",
    [
        "INSERT INTO t VALUES (1)",
        "UPDATE t SET a = 1",
        "SELECT * INTO #tmp FROM t",
        "SELECT 1; DELETE FROM t",
        "WITH c AS (SELECT 1 AS x) SELECT * FROM c",
        "EXEC dbo.p",
    ],
)
def test_mutating_or_non_select_statements_are_not_read_only(sql: str) -> None:
    assert not is_read_only(sql)
    assert not is_cacheable(sql)


@pytest.mark.parametrize(
    "sql",
    ["SELECT NEWID()", "SELECT GETDATE() AS now", "SELECT NEXT VALUE FOR dbo.Seq", "SELECT RAND()"],
)
def test_non_deterministic_selects_are_not_cacheable(sql: str) -> None:
    assert is_read_only(sql)
    assert not is_cacheable(sql)


@pytest.mark.parametrize(
    ("first", "second"),
    [
        ("SELECT * FROM t WHERE c = 'a  b'", "SELECT * FROM t WHERE c = 'a b'"),
        ("SELECT * FROM t WHERE c = N'x\ty'", "SELECT * FROM t WHERE c = N'x y'"),
        ("SELECT [first  name] FROM t", "SELECT [first name] FROM t"),
        ('SELECT "a  b" FROM t', 'SELECT "a b" FROM t'),
        ("SELECT 1 -- note\nFROM t", "SELECT 1 -- note FROM t"),
    ],
)
def test_key_keeps_whitespace_inside_literals_and_identifiers(first: str, second: str) -> None:
    assert cache_key(first) != cache_key(second)


def test_normalize_statement_leaves_literals_untouched() -> None:
    sql = "SELECT  name\n FROM t WHERE c = 'it''s  here'  AND d = [x  y] ;"
    assert normalize_statement(sql) == (
        "SELECT name FROM t WHERE c = 'it''s  here' AND d = [x  y]"
    )
