"""SQLite-backed document store client with CRUD operations and change publishing.

Each collection is a table of JSON documents (id, data, created, updated).
Filters use a small PocketBase-style syntax evaluated with SQLite's JSON functions:

    project_id = "abc" && status != "completed"
    assigned_to ?= "Sam Painter"        # array contains
    (status = "pending" || status = "in-progress")
"""

import asyncio
import json
import logging
import re
import secrets
import threading
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from paintcal.core.config import settings
from paintcal.core.errors import DatabaseError, RecordNotFoundError
from paintcal.core.realtime import ChangeAction, ChangeEvent, changefeed


logger = logging.getLogger(__name__)

__all__ = [
    "DatabaseError",
    "RecordNotFoundError",
    "close_connection",
    "create_record",
    "delete_record",
    "get_connection",
    "get_first_record",
    "get_record",
    "init_db",
    "list_records",
    "parse_filter",
    "sanitize_param",
    "update_record",
]

_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
_ID_LENGTH = 15


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def generate_id() -> str:
    """Generate a random 15 character record id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _json_default(value: Any) -> Any:  # noqa: ANN401
    """Serialize values json.dumps does not know about."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, default=_json_default)


def _row_to_record(row: aiosqlite.Row | tuple) -> dict[str, Any]:
    """Expand a (id, data, created, updated) row into a flat document."""
    record_id, data, created, updated = row
    return {"id": record_id, "created": created, "updated": updated, **json.loads(data)}


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


FilterParam = str | bool | int | float


def _parse_bare_value(value: str) -> bool | int | float:
    """Parse an unquoted filter literal; quoted literals always stay strings."""
    if value == "true":
        return True
    if value == "false":
        return False
    if re.fullmatch(r"-?\d+", value):
        return int(value)
    return float(value)


def _field_expr(field: str) -> str:
    """SQL expression addressing a document field."""
    if field in ("id", "created", "updated"):
        return field
    return f"json_extract(data, '$.{field}')"


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


_COMPARISON_RE = re.compile(
    r"""^(\w+)\s*(\?=|!=|>=|<=|=|>|<|~)\s*(?:(['"])(.*)\3|(true|false|-?\d+(?:\.\d+)?))$""",
)


def _parse_single_comparison(comparison: str) -> tuple[str, FilterParam]:
    """Parse a single comparison expression into a SQL condition and parameter.

    The right-hand side is a quoted string, or an unquoted true/false/number.
    """
    match = _COMPARISON_RE.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    quoted = match.group(3) is not None
    value: FilterParam = match.group(4) if quoted else _parse_bare_value(match.group(5))

    if op == "?=":
        # Array membership
        return f"EXISTS (SELECT 1 FROM json_each(data, '$.{field}') WHERE json_each.value = ?)", value

    sql_op = _get_sql_operator(op)
    if sql_op == "LIKE":
        raw_value = str(value)
        escaped = raw_value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"{_field_expr(field)} LIKE ? ESCAPE '\\'", f"%{escaped}%"

    return f"{_field_expr(field)} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[FilterParam]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[FilterParam]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params: list[FilterParam] = []

    for raw_part in parts:
        part = raw_part.strip()

        # Handle parenthesized OR groups
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate '+field' / '-field' / 'field' into an ORDER BY clause."""
    match = re.match(r"^([+-]?)([A-Za-z_][A-Za-z0-9_]*)$", sort.strip()) if sort else None
    if not match:
        if sort:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "created ASC, id ASC"

    direction = "DESC" if match.group(1) == "-" else "ASC"
    return f"{_field_expr(match.group(2))} {direction}, id ASC"


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = threading.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    cached_conn = _db_connections.get(cache_key)
    if cached_conn is not None:
        return cached_conn

    path.parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(path))
    await conn.execute("PRAGMA journal_mode = WAL")

    with _db_lock:
        # Another coroutine on this loop may have raced us here
        existing = _db_connections.setdefault(cache_key, conn)
    if existing is not conn:
        await conn.close()
        return existing

    logger.info(
        "Created new SQLite connection",
        extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
    )
    return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    with _db_lock:
        conn = _db_connections.pop(cache_key, None)
    if conn is None:
        return

    try:
        await conn.close()
        logger.info(
            "Closed SQLite connection",
            extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
        )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from paintcal.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


def _raise_missing_table(e: Exception, collection: str) -> None:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        msg = f"Table '{collection}' does not exist. Call init_db() first."
        raise DatabaseError(msg) from e


async def create_record(
    *,
    collection: str,
    data: dict[str, Any],
    record_id: str | None = None,
) -> dict[str, Any]:
    """Insert a new document and return it with its assigned id.

    Args:
        collection: Target collection
        data: Document fields
        record_id: Explicit id (e.g. a user's auth uid); generated when omitted
    """
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        new_id = record_id or generate_id()
        now = _now_iso()
        query = f"INSERT INTO {collection} (id, data, created, updated) VALUES (?, ?, ?, ?)"  # noqa: S608 - collection is validated
        await conn.execute(query, (new_id, _dump(data), now, now))
        await conn.commit()
    except Exception as e:
        _raise_missing_table(e, collection)
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Created record", extra={"collection": collection, "record_id": new_id})
    changefeed.publish(ChangeEvent(collection=collection, action=ChangeAction.CREATE, record_id=new_id))
    return {"id": new_id, "created": now, "updated": now, **json.loads(_dump(data))}


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single document by ID, raising RecordNotFoundError if not found."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"SELECT id, data, created, updated FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        row = await cursor.fetchone()
    except Exception as e:
        _raise_missing_table(e, collection)
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _row_to_record(row)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into a document and return the updated document.

    Fields not present in ``data`` are left untouched; the merge happens inside
    SQLite (json_patch) so no read-modify-write window exists for them.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"UPDATE {collection} SET data = json_patch(data, ?), updated = ? WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_dump(data), _now_iso(), record_id))
        await conn.commit()
        updated_rows = cursor.rowcount
    except Exception as e:
        _raise_missing_table(e, collection)
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    if updated_rows == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    changefeed.publish(ChangeEvent(collection=collection, action=ChangeAction.UPDATE, record_id=record_id))
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a document by ID, raising RecordNotFoundError if not found."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        await conn.commit()
        deleted_rows = cursor.rowcount
    except Exception as e:
        _raise_missing_table(e, collection)
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if deleted_rows == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    changefeed.publish(ChangeEvent(collection=collection, action=ChangeAction.DELETE, record_id=record_id))


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List documents with optional filtering, sorting, and pagination."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT id, data, created, updated FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608, E501 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
    except Exception as e:
        _raise_missing_table(e, collection)
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e

    records = [_row_to_record(row) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first document matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None
