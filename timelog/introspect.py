"""Runtime discovery of table columns.

The insert statement is built from whatever writable columns the entries table
has, so optional columns can be added or dropped without code changes.
"""
import logging

from db import ColumnInfo, Handle
from errors import QueryError

logger = logging.getLogger(__name__)

ID_COLUMN = "id"


def column_details(handle: Handle, table_name: str) -> list[ColumnInfo]:
    """Metadata for every writable column, in table order.

    Skips the id column and computed columns. Returns [] when the table is
    missing or cannot be inspected.
    """
    try:
        table_cols = handle.adapter.table_columns(handle, table_name)
    except QueryError as e:
        logger.warning(f"INTROSPECT_FAILED table={table_name} error={e}")
        return []
    return [
        col
        for col in table_cols
        if col.name.lower() != ID_COLUMN and not col.computed and not col.hidden
    ]


def columns(handle: Handle, table_name: str) -> list[str]:
    """Names of the writable columns of a table."""
    return [col.name for col in column_details(handle, table_name)]


def display_columns(handle: Handle, table_name: str) -> list[str]:
    """Names of the columns SELECT * returns, id and computed columns included."""
    try:
        table_cols = handle.adapter.table_columns(handle, table_name)
    except QueryError as e:
        logger.warning(f"INTROSPECT_FAILED table={table_name} error={e}")
        return []
    return [col.name for col in table_cols if not col.hidden]
