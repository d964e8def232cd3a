import logging
import os
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Mapping

from config import Settings, expand_path, is_database_url
from errors import DatabaseConnectionError, QueryError

logger = logging.getLogger(__name__)


@dataclass
class ColumnInfo:
    """Column metadata as reported by the storage engine."""

    name: str
    primary_key: bool = False
    computed: bool = False  # generated/virtual column, never written
    required: bool = False  # NOT NULL without a default value
    hidden: bool = False  # not returned by SELECT *


@dataclass
class Handle:
    """An open connection plus the adapter that owns it."""

    adapter: "StorageAdapter"
    location: str
    connection: Any
    engine: Any = None
    closed: bool = field(default=False)

    @property
    def dialect(self) -> str:
        return self.adapter.dialect_of(self)


def quote_ident(name: str) -> str:
    """Quote a table or column name (legacy names include keywords like End)."""
    return '"' + name.replace('"', '""') + '"'


def _check_database_file(location: str):
    """Fail fast when a database file is missing; opening must never create it."""
    path = expand_path(location)
    if not path.is_file():
        raise DatabaseConnectionError(f"Database file not found: {path}")
    if not os.access(path, os.R_OK):
        raise DatabaseConnectionError(f"Database file is not readable: {path}")
    return path


def _sqlite_columns(rows) -> list[ColumnInfo]:
    """Convert PRAGMA table_xinfo rows into ColumnInfo records.

    Rows are (cid, name, type, notnull, dflt_value, pk, hidden). hidden is 1 for
    hidden virtual-table columns, 2/3 for generated columns.
    """
    columns = []
    for row in rows:
        hidden = row[6] if len(row) > 6 else 0
        columns.append(
            ColumnInfo(
                name=row[1],
                primary_key=bool(row[5]),
                computed=hidden in (2, 3),
                required=bool(row[3]) and row[4] is None and not row[5],
                hidden=hidden == 1,
            )
        )
    return columns


class StorageAdapter:
    """Uniform open/close/select/execute over one SQL driver.

    Queries bind parameters by name (``:name``) from a mapping.
    """

    name = "base"

    def open(self, location: str) -> Handle:
        raise NotImplementedError

    def close(self, handle: Handle) -> None:
        raise NotImplementedError

    def select(self, handle: Handle, query: str, params: Mapping[str, Any] | None = None) -> list[tuple]:
        raise NotImplementedError

    def execute(self, handle: Handle, query: str, params: Mapping[str, Any] | None = None) -> None:
        raise NotImplementedError

    def dialect_of(self, handle: Handle) -> str:
        return "sqlite"

    def version(self) -> str:
        raise NotImplementedError

    def last_insert_id(self, handle: Handle) -> int | None:
        """Return the id generated by the last INSERT on this connection."""
        if handle.dialect == "postgresql":
            rows = self.select(handle, "SELECT lastval()")
        else:
            rows = self.select(handle, "SELECT last_insert_rowid()")
        return int(rows[0][0]) if rows and rows[0][0] is not None else None

    def table_columns(self, handle: Handle, table: str) -> list[ColumnInfo]:
        """Return column metadata for a table, or [] if the table does not exist."""
        if handle.dialect == "postgresql":
            rows = self.select(
                handle,
                """
                SELECT column_name, is_nullable, column_default, is_generated
                FROM information_schema.columns
                WHERE table_name = :table AND table_schema = current_schema()
                ORDER BY ordinal_position
                """,
                {"table": table},
            )
            return [
                ColumnInfo(
                    name=row[0],
                    primary_key=row[0] == "id",
                    computed=row[3] == "ALWAYS",
                    required=row[1] == "NO" and row[2] is None,
                )
                for row in rows
            ]
        return _sqlite_columns(self.select(handle, f"PRAGMA table_xinfo({quote_ident(table)})"))


class SQLAlchemyAdapter(StorageAdapter):
    """Adapter backed by a SQLModel/SQLAlchemy engine.

    SQLAlchemy is imported on first use so a missing install shows up in the
    diagnostics report instead of breaking every command.
    """

    name = "sqlalchemy"

    def open(self, location: str) -> Handle:
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError
        from sqlmodel import create_engine

        if is_database_url(location):
            url = location
            # Some hosts hand out postgres:// but SQLAlchemy needs postgresql://
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
        else:
            url = f"sqlite:///{_check_database_file(location)}"

        try:
            engine = create_engine(url, echo=False)
            connection = engine.connect()
            if engine.dialect.name == "sqlite":
                # Reading the schema fails on files that are not SQLite databases
                connection.execute(text("SELECT count(*) FROM sqlite_master"))
                connection.rollback()
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(f"Could not open {location}: {e}") from e

        db_driver = url.split(":", 1)[0]
        logger.info(f"DB_OPEN adapter={self.name} driver={db_driver} location={location}")
        return Handle(adapter=self, location=location, connection=connection, engine=engine)

    def close(self, handle: Handle) -> None:
        if handle.closed:
            return
        handle.connection.close()
        handle.engine.dispose()
        handle.closed = True
        logger.info(f"DB_CLOSE adapter={self.name} location={handle.location}")

    def select(self, handle, query, params=None):
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError

        logger.debug(f"SELECT sql={' '.join(query.split())} params={params}")
        try:
            result = handle.connection.execute(text(query), dict(params or {}))
            rows = [tuple(row) for row in result.fetchall()]
            # End the autobegun transaction so idle connections hold no locks
            handle.connection.rollback()
            return rows
        except SQLAlchemyError as e:
            handle.connection.rollback()
            raise QueryError(str(e)) from e

    def execute(self, handle, query, params=None):
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError

        logger.debug(f"EXECUTE sql={' '.join(query.split())} params={params}")
        try:
            handle.connection.execute(text(query), dict(params or {}))
            handle.connection.commit()
        except SQLAlchemyError as e:
            handle.connection.rollback()
            raise QueryError(str(e)) from e

    def dialect_of(self, handle):
        return handle.engine.dialect.name

    def version(self) -> str:
        import sqlalchemy

        return f"SQLAlchemy {sqlalchemy.__version__} (SQLite {sqlite3.sqlite_version})"


class SQLite3Adapter(StorageAdapter):
    """Adapter backed by the standard library sqlite3 module."""

    name = "sqlite3"

    def open(self, location: str) -> Handle:
        if is_database_url(location):
            raise DatabaseConnectionError(
                f"The sqlite3 driver only opens database files, not URLs: {location}"
            )
        path = _check_database_file(location)
        try:
            connection = sqlite3.connect(path)
            connection.execute("SELECT count(*) FROM sqlite_master").fetchall()
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Could not open {location}: {e}") from e

        logger.info(f"DB_OPEN adapter={self.name} location={location}")
        return Handle(adapter=self, location=location, connection=connection)

    def close(self, handle: Handle) -> None:
        if handle.closed:
            return
        handle.connection.close()
        handle.closed = True
        logger.info(f"DB_CLOSE adapter={self.name} location={handle.location}")

    def select(self, handle, query, params=None):
        logger.debug(f"SELECT sql={' '.join(query.split())} params={params}")
        try:
            cursor = handle.connection.execute(query, dict(params or {}))
            return [tuple(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise QueryError(str(e)) from e

    def execute(self, handle, query, params=None):
        logger.debug(f"EXECUTE sql={' '.join(query.split())} params={params}")
        try:
            handle.connection.execute(query, dict(params or {}))
            handle.connection.commit()
        except sqlite3.Error as e:
            handle.connection.rollback()
            raise QueryError(str(e)) from e

    def version(self) -> str:
        return f"sqlite3 module (SQLite {sqlite3.sqlite_version})"


ADAPTERS = {
    SQLAlchemyAdapter.name: SQLAlchemyAdapter,
    SQLite3Adapter.name: SQLite3Adapter,
}


def get_adapter(driver: str) -> StorageAdapter:
    """Pick the storage adapter once, by configured driver name."""
    try:
        return ADAPTERS[driver]()
    except KeyError:
        raise ValueError(f"Unknown storage driver: {driver}") from None


class StoreContext:
    """Owns the primary and reference connections for one process.

    Handles are opened on first need and kept until close() or reconnect().
    """

    def __init__(self, settings: Settings, adapter: StorageAdapter | None = None):
        self.settings = settings
        self.adapter = adapter or get_adapter(settings.driver)
        self.primary: Handle | None = None
        self.reference: Handle | None = None
        # Set after a failed reference open; cleared by close()
        self.reference_unavailable = False

    def ensure_connected(self):
        """Open whichever handle is missing.

        A primary failure raises DatabaseConnectionError; the reference store is
        optional, so its failure is logged once and lookups are skipped until
        the next close() or reconnect().
        """
        if self.primary is None or self.primary.closed:
            self.primary = self.adapter.open(self.settings.primary_db)

        reference_missing = self.reference is None or self.reference.closed
        if reference_missing and self.settings.reference_db and not self.reference_unavailable:
            try:
                self.reference = self.adapter.open(self.settings.reference_db)
            except DatabaseConnectionError as e:
                self.reference = None
                self.reference_unavailable = True
                logger.info(f"REFERENCE_UNAVAILABLE error={e}")
        return self

    def reconnect(self):
        """Drop both handles and open them again (picks up changed paths)."""
        self.close()
        return self.ensure_connected()

    def close(self):
        for handle in (self.primary, self.reference):
            if handle is not None:
                self.adapter.close(handle)
        self.primary = None
        self.reference = None
        self.reference_unavailable = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
