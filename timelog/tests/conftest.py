import sqlite3

import pytest
from sqlmodel import Session, SQLModel, create_engine

from config import Settings
from db import StoreContext
from models import ENTRY_COLUMNS, TenKProject, TimeSpent
from repository import EntryRepository


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's TIMELOG_* variables out of the tests."""
    for name in (
        "TIMELOG_PRIMARY_DB",
        "TIMELOG_REFERENCE_DB",
        "TIMELOG_PRIMARY_TABLE",
        "TIMELOG_REFERENCE_TABLE",
        "TIMELOG_RECENT_LIMIT",
        "TIMELOG_DRIVER",
        "TIMELOG_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def primary_db(tmp_path):
    """An empty entries database with the default zTimeSpent table."""
    path = tmp_path / "timespent.db"
    engine = create_engine(f"sqlite:///{path}")
    SQLModel.metadata.create_all(engine, tables=[TimeSpent.__table__])
    engine.dispose()
    return path


@pytest.fixture
def reference_db(tmp_path):
    """A reference database where project 42 has been renamed."""
    path = tmp_path / "projects.db"
    engine = create_engine(f"sqlite:///{path}")
    SQLModel.metadata.create_all(engine, tables=[TenKProject.__table__])
    with Session(engine) as session:
        session.add(TenKProject(project_id=42, project_directory="/proj/42-renamed"))
        session.add(TenKProject(project_id=7, project_directory="/proj/7"))
        session.commit()
    engine.dispose()
    return path


@pytest.fixture(params=["sqlalchemy", "sqlite3"])
def driver(request):
    return request.param


@pytest.fixture
def settings(primary_db, reference_db, driver):
    return Settings(primary_db=str(primary_db), reference_db=str(reference_db), driver=driver)


@pytest.fixture
def context(settings):
    context = StoreContext(settings)
    yield context
    context.close()


@pytest.fixture
def repository(context):
    return EntryRepository(context)


def insert_entry(path, table="zTimeSpent", **values):
    """Write a row straight to a database file, bypassing the code under test."""
    row = {ENTRY_COLUMNS.get(key, key): value for key, value in values.items()}
    columns = ", ".join(f'"{name}"' for name in row)
    marks = ", ".join("?" for _ in row)
    with sqlite3.connect(path) as conn:
        cursor = conn.execute(f'INSERT INTO "{table}" ({columns}) VALUES ({marks})', list(row.values()))
        new_id = cursor.lastrowid
    conn.close()
    return new_id


def run_sql(path, *statements):
    with sqlite3.connect(path) as conn:
        for statement in statements:
            conn.execute(statement)
    conn.close()


def count_rows(path, table="zTimeSpent"):
    with sqlite3.connect(path) as conn:
        count = conn.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]
    conn.close()
    return count


SAMPLE_ENTRY = {
    "date": "2025-07-01",
    "start": "09:00",
    "end": "11:30",
    "project_id": 42,
    "project_directory": "/proj/42",
    "description": "draft",
    "activity": "G",
}
