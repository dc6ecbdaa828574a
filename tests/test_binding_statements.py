from __future__ import annotations

import datetime as dt
from decimal import Decimal
import uuid

import pytest

from mssql_mcp.exceptions import QueryValidationError
from mssql_mcp.execute.binding import bind_parameters, infer_sql_type, render_parameterized
from mssql_mcp.execute.statements import build_page_statement, build_procedure_batch
from mssql_mcp.validation import ValidationRule


@pytest.mark.parametrize(
    ("value", "sql_type"),
    [
        (True, "bit"),
        (42, "bigint"),
        (1.5, "float"),
        (Decimal("12.345"), "decimal(38, 3)"),
        (Decimal("10"), "decimal(38, 0)"),
        (dt.datetime(2024, 1, 2, 3, 4, 5), "datetime2"),
        (dt.date(2024, 1, 2), "date"),
        (dt.time(3, 4), "time"),
        (b"\x00\x01", "varbinary(max)"),
        (uuid.UUID(int=1), "uniqueidentifier"),
        ("text", "nvarchar(max)"),
        (None, "nvarchar(max)"),
    ],
)
def test_infer_sql_type(value: object, sql_type: str) -> None:
    assert infer_sql_type(value) == sql_type


def test_infer_sql_type_rejects_containers() -> None:
    with pytest.raises(QueryValidationError) as info:
        infer_sql_type([1, 2])
    assert info.value.rule is ValidationRule.PARAMETER_VALUE


def test_bind_parameters_strips_prefix_and_keeps_order() -> None:
    bound = bind_parameters({"@status": "open", "min": 10})
    assert [(p.name, p.sql_type, p.value) for p in bound] == [
        ("status", "nvarchar(max)", "open"),
        ("min", "bigint", 10),
    ]
    assert bound[0].placeholder == "@status"


def test_bind_parameters_sends_uuid_as_text() -> None:
    value = uuid.UUID("12345678-1234-5678-1234-567812345678")
    (param,) = bind_parameters({"id": value})
    assert param.sql_type == "uniqueidentifier"
    assert param.value == "12345678-1234-5678-1234-567812345678"


@pytest.mark.parametrize("name", ["bad name", "x;DROP", "a-b", "", "@"])
def test_bind_parameters_rejects_invalid_names(name: str) -> None:
    with pytest.raises(QueryValidationError) as info:
        bind_parameters({name: 1})
    assert info.value.rule is ValidationRule.PARAMETER_NAME


def test_bind_parameters_rejects_case_insensitive_duplicates() -> None:
    with pytest.raises(QueryValidationError, match="Duplicate parameter name"):
        bind_parameters({"id": 1, "@ID": 2})


def test_render_without_parameters_sends_statement_unchanged() -> None:
    assert render_parameterized("SELECT 1 AS x", []) == ("SELECT 1 AS x", [])


def test_render_with_parameters_uses_sp_executesql() -> None:
    sql = "SELECT * FROM dbo.Orders WHERE Status = @status AND Total > @min"
    batch, params = render_parameterized(sql, bind_parameters({"status": "open", "min": 10}))
    assert batch == "EXEC sp_executesql @stmt = ?, @params = ?, @status = ?, @min = ?"
    # the caller's text travels as a bound value, never inside the batch
    assert params == [sql, "@status nvarchar(max), @min bigint", "open", 10]


def test_page_statement_defaults_to_stable_order() -> None:
    sql = build_page_statement(schema_name="dbo", table_name="Orders", limit=100, offset=0)
    assert sql == (
        "SELECT * FROM [dbo].[Orders] ORDER BY (SELECT NULL) "
        "OFFSET 0 ROWS FETCH NEXT 100 ROWS ONLY"
    )


def test_page_statement_with_filter_and_order() -> None:
    sql = build_page_statement(
        schema_name="sales",
        table_name="Orders",
        limit=25,
        offset=50,
        where_clause="  Status = @status ",
        order_by="CreatedAt DESC, Id",
    )
    assert sql == (
        "SELECT * FROM [sales].[Orders] WHERE Status = @status ORDER BY CreatedAt DESC, Id "
        "OFFSET 50 ROWS FETCH NEXT 25 ROWS ONLY"
    )


def test_procedure_batch_without_parameters() -> None:
    batch = build_procedure_batch(
        schema_name="dbo", procedure_name="Refresh", inputs=[], outputs={}
    )
    assert batch.sql.splitlines() == [
        "DECLARE @__mcp_return_value int;",
        "EXEC @__mcp_return_value = [dbo].[Refresh];",
        "SELECT @__mcp_return_value AS [__return_value];",
    ]
    assert batch.params == []
    assert batch.output_names == []


def test_procedure_batch_with_inputs_and_outputs() -> None:
    inputs = bind_parameters({"customerId": 7, "counter": 3})
    batch = build_procedure_batch(
        schema_name="dbo",
        procedure_name="GetOrderTotals",
        inputs=inputs,
        outputs={"total": "decimal(18, 2)", "counter": "int"},
    )
    assert batch.sql.splitlines() == [
        "DECLARE @__mcp_return_value int;",
        "DECLARE @total decimal(18, 2);",
        "DECLARE @counter int = ?;",
        "EXEC @__mcp_return_value = [dbo].[GetOrderTotals] @customerId = ?, "
        "@total = @total OUTPUT, @counter = @counter OUTPUT;",
        "SELECT @__mcp_return_value AS [__return_value], @total AS [total], "
        "@counter AS [counter];",
    ]
    # seeded output first, then plain inputs in declaration order
    assert batch.params == [3, 7]
    assert batch.output_names == ["total", "counter"]
