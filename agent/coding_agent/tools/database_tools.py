"""
Read-only lookups against the project database.
"""

import re
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ToolExecutionError, UnsafeQueryError

MAX_ROWS = 200

_READ_PREFIX_RE = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)
_BLOCKED_RE = re.compile(
    r"\b(insert|update|delete|drop|truncate|alter|create|grant|revoke|attach|detach|pragma|vacuum)\b",
    re.IGNORECASE,
)


def check_query_safety(sql: str) -> str:
    """Accept a single SELECT/WITH statement, reject anything else."""
    if not sql or not isinstance(sql, str):
        raise UnsafeQueryError("SQL must be a non-empty string")
    statement = sql.strip().rstrip(";").strip()
    if ";" in statement:
        raise UnsafeQueryError("Blocked: multiple statements are not allowed")
    if not _READ_PREFIX_RE.match(statement):
        raise UnsafeQueryError("Blocked: only SELECT queries are allowed")
    if _BLOCKED_RE.search(statement):
        raise UnsafeQueryError("Blocked: dangerous SQL keyword detected")
    return statement


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


async def safe_query(sql: str, params: dict | None = None, *, engine: Engine) -> dict:
    """Run a read-only query. ``params`` binds ``:name`` placeholders."""
    statement = check_query_safety(sql)
    if params is not None and not isinstance(params, dict):
        raise ValueError("params must be an object mapping placeholder names to values")

    try:
        with engine.connect() as conn:
            result = conn.execute(text(statement), params or {})
            columns = list(result.keys())
            fetched = result.fetchmany(MAX_ROWS + 1)
    except SQLAlchemyError as e:
        raise ToolExecutionError(f"Query failed: {e}") from e

    rows = [
        {col: _jsonable(value) for col, value in zip(columns, row)}
        for row in fetched[:MAX_ROWS]
    ]
    return {
        "columns": columns,
        "rows": rows,
        "row_count": len(rows),
        "truncated": len(fetched) > MAX_ROWS,
    }


async def list_tables(*, engine: Engine) -> dict:
    try:
        tables = sorted(inspect(engine).get_table_names())
    except SQLAlchemyError as e:
        raise ToolExecutionError(f"Could not inspect database: {e}") from e
    return {"tables": tables}
