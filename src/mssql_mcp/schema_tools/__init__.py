"""Schema discovery tools (catalog listings, table structure, databases)."""

from __future__ import annotations

from .catalog import build_schema_listing
from .mcp_tools import register_schema_tools

__all__ = ["build_schema_listing", "register_schema_tools"]
