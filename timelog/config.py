import logging
import os
from pathlib import Path

from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

# Default locations for local use; both can be overridden from the environment
DEFAULT_DATA_DIR = Path("~/.timelog")
DEFAULT_PRIMARY_DB = str(DEFAULT_DATA_DIR / "timespent.db")
DEFAULT_REFERENCE_DB = str(DEFAULT_DATA_DIR / "projects.db")
DEFAULT_PRIMARY_TABLE = "zTimeSpent"
DEFAULT_REFERENCE_TABLE = "tenKprojects"
DEFAULT_RECENT_LIMIT = 20
DEFAULT_DRIVER = "sqlalchemy"

DRIVERS = ("sqlalchemy", "sqlite3")


class Settings(BaseModel):
    primary_db: str = DEFAULT_PRIMARY_DB  # file path or database URL
    reference_db: str | None = DEFAULT_REFERENCE_DB  # optional project lookup store
    primary_table: str = DEFAULT_PRIMARY_TABLE
    reference_table: str = DEFAULT_REFERENCE_TABLE
    recent_limit: int = DEFAULT_RECENT_LIMIT
    driver: str = DEFAULT_DRIVER

    @field_validator("primary_db", "primary_table", "reference_table")
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("reference_db")
    @classmethod
    def validate_reference_db(cls, v):
        # An empty value switches the project lookup off
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("recent_limit")
    @classmethod
    def validate_recent_limit(cls, v):
        if v < 0:
            raise ValueError("recent_limit must be zero or greater")
        return v

    @field_validator("driver")
    @classmethod
    def validate_driver(cls, v):
        v = v.strip().lower()
        if v not in DRIVERS:
            raise ValueError(f"driver must be one of: {', '.join(DRIVERS)}")
        return v

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Build settings from TIMELOG_* environment variables.

        Keyword overrides win over the environment; None means "not given".
        """
        values = {
            "primary_db": os.getenv("TIMELOG_PRIMARY_DB"),
            "reference_db": os.getenv("TIMELOG_REFERENCE_DB"),
            "primary_table": os.getenv("TIMELOG_PRIMARY_TABLE"),
            "reference_table": os.getenv("TIMELOG_REFERENCE_TABLE"),
            "recent_limit": os.getenv("TIMELOG_RECENT_LIMIT"),
            "driver": os.getenv("TIMELOG_DRIVER"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        settings = cls(**{k: v for k, v in values.items() if v is not None})
        logger.debug(
            f"SETTINGS primary_db={settings.primary_db} reference_db={settings.reference_db} "
            f"driver={settings.driver}"
        )
        return settings


def is_database_url(location: str) -> bool:
    """Check if a configured location is a database URL rather than a file path."""
    return "://" in location


def expand_path(location: str) -> Path:
    """Expand ~ and environment variables in a configured file path."""
    return Path(os.path.expandvars(location)).expanduser()
