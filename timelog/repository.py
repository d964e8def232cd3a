import logging
from typing import Any, Mapping

import introspect
from db import StoreContext, quote_ident
from errors import QueryError, SchemaError
from models import ENTRY_COLUMNS, PROJECT_DIRECTORY_COLUMN, PROJECT_ID_COLUMN
from schemas import LastEntry

logger = logging.getLogger(__name__)


class EntryRepository:
    """Reads and writes time entries through a StoreContext.

    Every operation first makes sure the connections are up. Reads never raise
    on query failures; they return empty results so adding an entry is never
    blocked by a broken lookup.
    """

    def __init__(self, context: StoreContext):
        self.context = context
        self.settings = context.settings

    @property
    def adapter(self):
        return self.context.adapter

    @property
    def table(self) -> str:
        return self.settings.primary_table

    def _primary(self):
        self.context.ensure_connected()
        return self.context.primary

    def last_entry(self) -> LastEntry:
        """Date, end time and project of the most recent entry (all None if none)."""
        handle = self._primary()
        query = (
            f"SELECT {quote_ident(ENTRY_COLUMNS['date'])}, {quote_ident(ENTRY_COLUMNS['end'])}, "
            f"{quote_ident(ENTRY_COLUMNS['project_id'])}, {quote_ident(ENTRY_COLUMNS['project_directory'])} "
            f"FROM {quote_ident(self.table)} ORDER BY id DESC LIMIT 1"
        )
        try:
            rows = self.adapter.select(handle, query)
        except QueryError as e:
            logger.warning(f"LAST_ENTRY_FAILED table={self.table} error={e}")
            return LastEntry()
        if not rows:
            return LastEntry()

        date, end_time, project_id, project_directory = rows[0]
        try:
            project_id = int(project_id) if project_id is not None else None
        except (TypeError, ValueError):
            logger.warning(f"LAST_ENTRY_BAD_PROJECT_ID value={project_id!r}")
            project_id = None
        return LastEntry(
            date=date or None,
            end_time=end_time or None,
            project_id=project_id or None,
            project_directory=project_directory or None,
        )

    def recent_entries(self, limit: int | None = None) -> list[tuple]:
        """Most recent rows first, at most `limit` of them."""
        if limit is None:
            limit = self.settings.recent_limit
        if limit <= 0:
            return []
        handle = self._primary()
        try:
            return self.adapter.select(
                handle,
                f"SELECT * FROM {quote_ident(self.table)} ORDER BY id DESC LIMIT :limit",
                {"limit": limit},
            )
        except QueryError as e:
            logger.warning(f"RECENT_ENTRIES_FAILED table={self.table} error={e}")
            return []

    def entry_columns(self) -> list[str]:
        """Column names matching the rows returned by recent_entries()."""
        return introspect.display_columns(self._primary(), self.table)

    def project_directory(self, project_id: int) -> str | None:
        """Look a project's directory up in the reference store."""
        self.context.ensure_connected()
        handle = self.context.reference
        if handle is None:
            logger.info(f"PROJECT_LOOKUP_SKIPPED project_id={project_id} reason=no_reference_store")
            return None
        query = (
            f"SELECT {quote_ident(PROJECT_DIRECTORY_COLUMN)} "
            f"FROM {quote_ident(self.settings.reference_table)} "
            f"WHERE {quote_ident(PROJECT_ID_COLUMN)} = :project_id LIMIT 1"
        )
        try:
            rows = self.adapter.select(handle, query, {"project_id": project_id})
        except QueryError as e:
            logger.warning(f"PROJECT_LOOKUP_FAILED project_id={project_id} error={e}")
            return None
        if not rows or not rows[0][0]:
            return None
        return rows[0][0]

    def build_insert(self, fields: Mapping[str, Any]) -> tuple[str, dict]:
        """Reconcile `fields` with the table's writable columns.

        Writable columns missing from `fields` are written as NULL unless the
        table requires a value for them. Keys that are not writable columns
        are dropped.
        """
        handle = self._primary()
        details = introspect.column_details(handle, self.table)
        if not details:
            raise SchemaError(f"No writable columns found for table '{self.table}'")

        names = {col.name for col in details}
        missing_required = [col.name for col in details if col.required and fields.get(col.name) is None]
        if missing_required:
            raise SchemaError(
                f"Table '{self.table}' requires values for: {', '.join(missing_required)}"
            )
        unknown = [key for key in fields if key not in names]
        if unknown:
            logger.warning(f"INSERT_DROPPED_FIELDS table={self.table} fields={unknown}")

        # Column names may not be valid bind names, so bind by position
        params = {f"p{i}": fields.get(col.name) for i, col in enumerate(details)}
        query = (
            f"INSERT INTO {quote_ident(self.table)} "
            f"({', '.join(quote_ident(col.name) for col in details)}) "
            f"VALUES ({', '.join(':' + key for key in params)})"
        )
        return query, params

    def add_entry(self, fields: Mapping[str, Any]) -> int | None:
        """Insert one entry and return its new id, or None if the write failed.

        Raises SchemaError when the table's columns cannot be reconciled.
        """
        query, params = self.build_insert(fields)
        handle = self.context.primary
        try:
            self.adapter.execute(handle, query, params)
            # Same connection, before any other write
            new_id = self.adapter.last_insert_id(handle)
        except QueryError as e:
            logger.error(f"INSERT_FAILED table={self.table} error={e}")
            return None
        logger.info(f"INSERT_OK table={self.table} id={new_id}")
        return new_id
