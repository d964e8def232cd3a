"""Tests for the storage adapters and the connection context."""
import pytest

from config import Settings
from db import Handle, SQLAlchemyAdapter, SQLite3Adapter, StorageAdapter, StoreContext, get_adapter, quote_ident
from errors import DatabaseConnectionError, QueryError

from conftest import SAMPLE_ENTRY, insert_entry


@pytest.fixture
def adapter(driver):
    return get_adapter(driver)


def test_get_adapter_by_name():
    """Test adapter selection by driver name."""
    assert isinstance(get_adapter("sqlalchemy"), SQLAlchemyAdapter)
    assert isinstance(get_adapter("sqlite3"), SQLite3Adapter)
    with pytest.raises(ValueError):
        get_adapter("oracle")


def test_open_missing_file_raises_connection_error(adapter, tmp_path):
    """Test that opening a missing file fails without creating it."""
    missing = tmp_path / "nope.db"
    with pytest.raises(DatabaseConnectionError) as exc_info:
        adapter.open(str(missing))
    assert isinstance(exc_info.value, ConnectionError)
    # Opening must never create the file
    assert not missing.exists()


def test_open_non_database_file_raises_connection_error(adapter, tmp_path):
    """Test that a non-database file is refused at open time."""
    bogus = tmp_path / "notes.db"
    bogus.write_text("this is not a database\n" * 64)
    with pytest.raises(DatabaseConnectionError):
        adapter.open(str(bogus))


def test_close_twice_is_safe(adapter, primary_db):
    """Test that closing a handle twice is a no-op."""
    handle = adapter.open(str(primary_db))
    adapter.close(handle)
    adapter.close(handle)
    assert handle.closed


def test_select_binds_named_parameters(adapter, primary_db):
    """Test named parameter binding in select."""
    insert_entry(primary_db, **SAMPLE_ENTRY)
    insert_entry(primary_db, **{**SAMPLE_ENTRY, "project_id": 7})
    handle = adapter.open(str(primary_db))
    try:
        rows = adapter.select(
            handle,
            'SELECT "ProjectID", "End" FROM "zTimeSpent" WHERE "ProjectID" = :pid',
            {"pid": 7},
        )
    finally:
        adapter.close(handle)
    assert rows == [(7, "11:30")]


def test_execute_and_last_insert_id(adapter, primary_db):
    """Test insert followed by last_insert_id."""
    insert_entry(primary_db, **SAMPLE_ENTRY)
    handle = adapter.open(str(primary_db))
    try:
        adapter.execute(
            handle,
            'INSERT INTO "zTimeSpent" ("DateDashed", "ProjectID") VALUES (:d, :p)',
            {"d": "2025-07-02", "p": 9},
        )
        assert adapter.last_insert_id(handle) == 2
        rows = adapter.select(handle, 'SELECT "DateDashed" FROM "zTimeSpent" WHERE id = 2')
    finally:
        adapter.close(handle)
    assert rows == [("2025-07-02",)]


def test_bad_query_raises_query_error(adapter, primary_db):
    """Test that failed statements raise QueryError and keep the connection usable."""
    handle = adapter.open(str(primary_db))
    try:
        with pytest.raises(QueryError):
            adapter.select(handle, 'SELECT * FROM "no_such_table"')
        with pytest.raises(QueryError):
            adapter.execute(handle, 'INSERT INTO "no_such_table" (x) VALUES (1)')
        # The connection is still usable afterwards
        assert adapter.select(handle, "SELECT 1") == [(1,)]
    finally:
        adapter.close(handle)


def test_table_columns_reports_metadata(adapter, primary_db):
    """Test column metadata for the entry table."""
    handle = adapter.open(str(primary_db))
    try:
        columns = adapter.table_columns(handle, "zTimeSpent")
    finally:
        adapter.close(handle)
    by_name = {col.name: col for col in columns}
    assert by_name["id"].primary_key
    assert set(by_name) == {"id", "DateDashed", "Start", "End", "ProjectID",
                            "ProjectDirectory", "Description", "Activity"}
    assert not any(col.required for col in columns)


def test_sqlite3_adapter_rejects_urls():
    """Test that the sqlite3 driver refuses database URLs."""
    with pytest.raises(DatabaseConnectionError):
        SQLite3Adapter().open("postgresql://localhost/timelog")


def test_quote_ident_escapes_quotes():
    """Test identifier quoting."""
    assert quote_ident("End") == '"End"'
    assert quote_ident('we"ird') == '"we""ird"'


def test_ensure_connected_is_idempotent(settings):
    """Test that ensure_connected reuses open handles."""
    with StoreContext(settings) as context:
        context.ensure_connected()
        primary, reference = context.primary, context.reference
        context.ensure_connected()
        assert context.primary is primary
        assert context.reference is reference
    assert context.primary is None
    assert primary.closed


def test_missing_reference_store_is_not_fatal(primary_db, tmp_path, driver):
    """Test that a missing reference store leaves the primary usable."""
    settings = Settings(primary_db=str(primary_db), reference_db=str(tmp_path / "gone.db"), driver=driver)
    with StoreContext(settings) as context:
        context.ensure_connected()
        assert context.primary is not None
        assert context.reference is None


def test_missing_primary_store_is_fatal(reference_db, tmp_path, driver):
    """Test that a missing primary store raises DatabaseConnectionError."""
    settings = Settings(primary_db=str(tmp_path / "gone.db"), reference_db=str(reference_db), driver=driver)
    with StoreContext(settings) as context:
        with pytest.raises(DatabaseConnectionError):
            context.ensure_connected()


def test_reconnect_opens_fresh_handles(settings):
    """Test that reconnect replaces the open handles."""
    with StoreContext(settings) as context:
        context.ensure_connected()
        old = context.primary
        context.reconnect()
        assert old.closed
        assert context.primary is not old
        assert not context.primary.closed


class CountingAdapter(SQLite3Adapter):
    """sqlite3 adapter that counts open() calls per location."""

    def __init__(self):
        self.opened = []

    def open(self, location):
        self.opened.append(location)
        return super().open(location)


def test_failed_reference_open_is_not_retried(primary_db, tmp_path):
    """Test that a missing reference store is tried once until close()."""
    absent = str(tmp_path / "gone.db")
    adapter = CountingAdapter()
    settings = Settings(primary_db=str(primary_db), reference_db=absent, driver="sqlite3")
    with StoreContext(settings, adapter) as context:
        for _ in range(3):
            context.ensure_connected()
        assert adapter.opened.count(absent) == 1
        assert context.reference_unavailable

        context.reconnect()
        assert adapter.opened.count(absent) == 2


def test_sqlalchemy_select_leaves_no_open_transaction(primary_db):
    """Test that a read does not keep a transaction open on the connection."""
    adapter = SQLAlchemyAdapter()
    handle = adapter.open(str(primary_db))
    try:
        assert adapter.select(handle, 'SELECT COUNT(*) FROM "zTimeSpent"') == [(0,)]
        assert not handle.connection.in_transaction()
    finally:
        adapter.close(handle)


class FakePostgresAdapter(StorageAdapter):
    """Adapter that answers information_schema queries from canned rows."""

    def __init__(self, rows):
        self.rows = rows
        self.queries = []

    def dialect_of(self, handle):
        return "postgresql"

    def select(self, handle, query, params=None):
        self.queries.append((" ".join(query.split()), params))
        return self.rows


def test_postgres_columns_are_limited_to_current_schema():
    """Test that PostgreSQL column lookups only read the current schema."""
    adapter = FakePostgresAdapter([
        ("id", "NO", "nextval('seq')", "NEVER"),
        ("DateDashed", "YES", None, "NEVER"),
        ("Owner", "NO", None, "NEVER"),
        ("Span", "YES", None, "ALWAYS"),
    ])
    handle = Handle(adapter=adapter, location="postgresql://db/timelog", connection=None)

    columns = adapter.table_columns(handle, "zTimeSpent")

    query, params = adapter.queries[0]
    assert "table_schema = current_schema()" in query
    assert params == {"table": "zTimeSpent"}
    by_name = {col.name: col for col in columns}
    assert by_name["id"].primary_key and not by_name["id"].required
    assert by_name["Owner"].required
    assert by_name["Span"].computed
