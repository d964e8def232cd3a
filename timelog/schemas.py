import re
from datetime import datetime
from typing import NamedTuple

from pydantic import field_validator
from sqlmodel import SQLModel

from errors import FormatError
from models import ENTRY_COLUMNS

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

ACTIVITIES = {
    "G": "generative",
    "E": "editing",
    "S": "support",
    "none": "none",
}
DEFAULT_ACTIVITY = "none"


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def validate_date(value: str | None, default: str | None = None) -> str:
    """Accept YYYY-MM-DD, or the default when the input is blank."""
    if _blank(value):
        if default:
            return default
        raise FormatError("Date is required (YYYY-MM-DD)")
    value = value.strip()
    if not DATE_RE.match(value):
        raise FormatError(f"Invalid date '{value}': expected YYYY-MM-DD")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise FormatError(f"Invalid date '{value}': no such calendar day") from None
    return value


def validate_time(value: str | None, default: str | None = None) -> str:
    """Accept 24-hour HH:MM, or the default when the input is blank."""
    if _blank(value):
        if default:
            return default
        raise FormatError("Time is required (HH:MM)")
    value = value.strip()
    if not TIME_RE.match(value):
        raise FormatError(f"Invalid time '{value}': expected HH:MM between 00:00 and 23:59")
    return value


def validate_project_id(value, default: int | None = None) -> int:
    """Parse a project identifier; zero is never a valid project.

    Blank input falls back to the default. Blank input without a default ends
    up as zero as well, so it is rejected with the same message.
    """
    if _blank(value):
        parsed = default or 0
    else:
        try:
            parsed = int(str(value).strip())
        except ValueError:
            raise FormatError(f"Invalid project ID '{value}': expected an integer") from None
    if parsed == 0:
        raise FormatError("Invalid project ID: 0 (enter a non-zero project number)")
    return parsed


def validate_activity(value: str | None, default: str = DEFAULT_ACTIVITY) -> str:
    """One of G, E, S or none (case-insensitive)."""
    if _blank(value):
        return default
    value = value.strip()
    if value.lower() == "none":
        return "none"
    if value.upper() in ACTIVITIES:
        return value.upper()
    raise FormatError(f"Invalid activity '{value}': choose one of {', '.join(ACTIVITIES)}")


def validate_text(value: str | None, default: str | None = None, required: bool = False) -> str:
    """Free text: taken as typed, default only for blank input."""
    if _blank(value):
        if default:
            return default
        if required:
            raise FormatError("A value is required")
        return ""
    return value.strip()


class LastEntry(NamedTuple):
    """Defaults derived from the most recent entry; every field may be None."""

    date: str | None = None
    end_time: str | None = None
    project_id: int | None = None
    project_directory: str | None = None


class TimeEntry(SQLModel):
    """A validated entry, ready to be written to the entries table."""

    date: str
    start: str
    end: str
    project_id: int
    project_directory: str
    description: str = ""
    activity: str = DEFAULT_ACTIVITY

    @field_validator("date")
    @classmethod
    def check_date(cls, v):
        return validate_date(v)

    @field_validator("start", "end")
    @classmethod
    def check_time(cls, v):
        return validate_time(v)

    @field_validator("project_id", mode="before")
    @classmethod
    def check_project_id(cls, v):
        return validate_project_id(v)

    @field_validator("project_directory")
    @classmethod
    def check_project_directory(cls, v):
        return validate_text(v, required=True)

    @field_validator("activity")
    @classmethod
    def check_activity(cls, v):
        return validate_activity(v)

    def to_row(self) -> dict:
        """Map the record onto the entries table's column names."""
        return {column: getattr(self, name) for name, column in ENTRY_COLUMNS.items()}
