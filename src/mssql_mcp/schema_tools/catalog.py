"""Catalog queries for schema discovery.

All filters are bound parameters; nothing caller-supplied is interpolated.
"""

from __future__ import annotations

from typing import Final, Literal

ObjectType = Literal["tables", "views", "procedures", "functions", "all"]

_TABLES_SQL: Final[str] = (
    "SELECT TABLE_SCHEMA, TABLE_NAME, TABLE_TYPE, 'table' AS OBJECT_TYPE "
    "FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_TYPE = 'BASE TABLE'"
)
_VIEWS_SQL: Final[str] = (
    "SELECT TABLE_SCHEMA, TABLE_NAME, 'VIEW' AS TABLE_TYPE, 'view' AS OBJECT_TYPE "
    "FROM INFORMATION_SCHEMA.VIEWS WHERE 1 = 1"
)
_PROCEDURES_SQL: Final[str] = (
    "SELECT ROUTINE_SCHEMA AS TABLE_SCHEMA, ROUTINE_NAME AS TABLE_NAME, "
    "'PROCEDURE' AS TABLE_TYPE, 'procedure' AS OBJECT_TYPE "
    "FROM INFORMATION_SCHEMA.ROUTINES WHERE ROUTINE_TYPE = 'PROCEDURE'"
)
_FUNCTIONS_SQL: Final[str] = (
    "SELECT ROUTINE_SCHEMA AS TABLE_SCHEMA, ROUTINE_NAME AS TABLE_NAME, "
    "'FUNCTION' AS TABLE_TYPE, 'function' AS OBJECT_TYPE "
    "FROM INFORMATION_SCHEMA.ROUTINES WHERE ROUTINE_TYPE = 'FUNCTION'"
)

# object type -> (query, schema column used for filtering)
_OBJECT_QUERIES: Final[dict[str, tuple[str, str]]] = {
    "tables": (_TABLES_SQL, "TABLE_SCHEMA"),
    "views": (_VIEWS_SQL, "TABLE_SCHEMA"),
    "procedures": (_PROCEDURES_SQL, "ROUTINE_SCHEMA"),
    "functions": (_FUNCTIONS_SQL, "ROUTINE_SCHEMA"),
}

DESCRIBE_TABLE_SQL: Final[str] = """
SELECT
    COLUMN_NAME,
    DATA_TYPE,
    CHARACTER_MAXIMUM_LENGTH,
    NUMERIC_PRECISION,
    NUMERIC_SCALE,
    IS_NULLABLE,
    COLUMN_DEFAULT,
    ORDINAL_POSITION
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_NAME = @tableName
AND TABLE_SCHEMA = @schemaName
ORDER BY ORDINAL_POSITION
""".strip()

LIST_DATABASES_SQL: Final[str] = """
SELECT
    name,
    database_id,
    create_date,
    collation_name,
    state_desc,
    user_access_desc,
    is_read_only,
    is_auto_close_on,
    is_auto_shrink_on,
    recovery_model_desc
FROM sys.databases
ORDER BY name
""".strip()


def build_schema_listing(object_type: ObjectType, *, filter_schema: bool) -> str:
    """Build the UNION ALL listing for `object_type`.

    When `filter_schema` is set, every branch filters on the ``@schemaName``
    bound parameter.
    """
    kinds = list(_OBJECT_QUERIES) if object_type == "all" else [object_type]
    branches: list[str] = []
    for kind in kinds:
        query, schema_column = _OBJECT_QUERIES[kind]
        if filter_schema:
            query += f" AND {schema_column} = @schemaName"
        branches.append(query)
    return " UNION ALL ".join(branches) + " ORDER BY TABLE_SCHEMA, TABLE_NAME"
