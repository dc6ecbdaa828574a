"""Execute package: the secure SQL execution pipeline.

Exports typed models, the query cache, the executor and the FastMCP
registration helper.
"""

from __future__ import annotations

from .cache import QueryCache, cache_key, is_cacheable, is_read_only
from .mcp_tools import register_execute_tools
from .models import PageRequest, ProcedureRequest, QueryRequest, QueryResult
from .runner import QueryExecutor

__all__ = [
    "PageRequest",
    "ProcedureRequest",
    "QueryCache",
    "QueryExecutor",
    "QueryRequest",
    "QueryResult",
    "cache_key",
    "is_cacheable",
    "is_read_only",
    "register_execute_tools",
]
