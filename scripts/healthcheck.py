"""Container healthcheck for the mssql-mcp HTTP transport.

Probes the server's /health route and exits 0 only when the expected service
answers as healthy. The database connection phase is printed but does not
affect the result: the server connects lazily on the first query.

Usage: python scripts/healthcheck.py [URL]
"""

from __future__ import annotations

import json
import os
import sys
from typing import Final
from urllib.error import URLError
from urllib.request import Request, urlopen

DEFAULT_URL: Final[str] = "http://127.0.0.1:8000/health"
EXPECTED_SERVICE: Final[str] = "mssql-mcp-server"
TIMEOUT_SECONDS: Final[float] = 4.0


def probe(url: str) -> tuple[bool, str]:
    request = Request(url, headers={"User-Agent": "mssql-mcp/healthcheck"})  # noqa: S310
    try:
        with urlopen(request, timeout=TIMEOUT_SECONDS) as resp:  # noqa: S310
            if resp.status != 200:
                return False, f"HTTP {resp.status}"
            payload = json.loads(resp.read().decode("utf-8"))
    except (URLError, OSError, ValueError) as exc:
        return False, f"probe failed: {exc}"

    if payload.get("service") != EXPECTED_SERVICE:
        return False, f"unexpected service: {payload.get('service')!r}"
    if payload.get("status") != "healthy":
        return False, f"status {payload.get('status')!r}"
    return True, f"healthy (connection={payload.get('connection', 'unknown')})"


def main(argv: list[str]) -> int:
    url = argv[1] if len(argv) > 1 else os.getenv("MSSQL_MCP_HEALTH_URL", DEFAULT_URL)
    ok, detail = probe(url)
    print(detail, file=sys.stdout if ok else sys.stderr)
    return 0 if ok else 1


if __name__ == "__main__":  # pragma: no cover - used by Docker
    raise SystemExit(main(sys.argv))
