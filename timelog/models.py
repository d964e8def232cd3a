from sqlalchemy import Column, Integer, String
from sqlmodel import Field, SQLModel

# Typed record field -> legacy column name in the entries table
ENTRY_COLUMNS = {
    "date": "DateDashed",
    "start": "Start",
    "end": "End",
    "project_id": "ProjectID",
    "project_directory": "ProjectDirectory",
    "description": "Description",
    "activity": "Activity",
}

# Column names in the project reference table
PROJECT_ID_COLUMN = "ProjectID"
PROJECT_DIRECTORY_COLUMN = "ProjectDirectory"


class TimeSpent(SQLModel, table=True):
    """Default layout of the entries table (zTimeSpent)."""

    __tablename__ = "zTimeSpent"

    id: int | None = Field(default=None, sa_column=Column("id", Integer, primary_key=True))
    date: str | None = Field(default=None, sa_column=Column("DateDashed", String))  # YYYY-MM-DD
    start: str | None = Field(default=None, sa_column=Column("Start", String))  # HH:MM
    end: str | None = Field(default=None, sa_column=Column("End", String))  # HH:MM
    project_id: int | None = Field(default=None, sa_column=Column("ProjectID", Integer))
    project_directory: str | None = Field(default=None, sa_column=Column("ProjectDirectory", String))
    description: str | None = Field(default=None, sa_column=Column("Description", String))
    activity: str | None = Field(default=None, sa_column=Column("Activity", String))  # G, E, S or none


class TenKProject(SQLModel, table=True):
    """Default layout of the project reference table (tenKprojects)."""

    __tablename__ = "tenKprojects"

    project_id: int = Field(sa_column=Column("ProjectID", Integer, primary_key=True))
    project_directory: str | None = Field(default=None, sa_column=Column("ProjectDirectory", String))
