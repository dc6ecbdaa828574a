"""pyodbc output converters for SQL Server types the driver cannot decode.

pyodbc hands these columns over as raw bytes in the ODBC driver's wire layout;
without a converter, fetching them raises ``ODBC SQL type -155 is not yet
supported``.
"""

from __future__ import annotations

import datetime as dt
import struct
from typing import Final, Protocol

# SQL_SS_TIMESTAMPOFFSET from msodbcsql.h
SQL_DATETIMEOFFSET: Final[int] = -155

# year, month, day, hour, minute, second, fraction (ns), tz hour, tz minute
_DATETIMEOFFSET_LAYOUT: Final[struct.Struct] = struct.Struct("<6hI2h")


class SupportsOutputConverters(Protocol):
    def add_output_converter(self, sqltype: int, func: object) -> None: ...


def decode_datetimeoffset(raw: bytes | None) -> dt.datetime | None:
    """Decode a ``datetimeoffset`` value into a timezone-aware datetime."""
    if raw is None:
        return None
    year, month, day, hour, minute, second, nanos, tz_hour, tz_minute = (
        _DATETIMEOFFSET_LAYOUT.unpack(raw)
    )
    offset = dt.timezone(dt.timedelta(hours=tz_hour, minutes=tz_minute))
    return dt.datetime(year, month, day, hour, minute, second, nanos // 1000, tzinfo=offset)


def register_output_converters(dbapi_connection: SupportsOutputConverters) -> None:
    dbapi_connection.add_output_converter(SQL_DATETIMEOFFSET, decode_datetimeoffset)
