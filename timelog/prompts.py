"""Interactive field collection for a new time entry.

Prompting goes through an `ask(label, default) -> str` callable so the flow can
run against a terminal (see app.py) or against scripted answers in tests.
"""
import logging
from datetime import date
from typing import Callable

from errors import FormatError
from schemas import (
    ACTIVITIES,
    DEFAULT_ACTIVITY,
    TimeEntry,
    validate_activity,
    validate_date,
    validate_project_id,
    validate_text,
    validate_time,
)

logger = logging.getLogger(__name__)

Ask = Callable[[str, str | None], str]
OnError = Callable[[FormatError], None]


def prompt_date(ask: Ask, label: str, default: str | None = None) -> str:
    return validate_date(ask(label, default), default)


def prompt_time(ask: Ask, label: str, default: str | None = None) -> str:
    return validate_time(ask(label, default), default)


def prompt_project_id(ask: Ask, label: str, default: int | None = None) -> int:
    shown = str(default) if default else None
    return validate_project_id(ask(label, shown), default)


def prompt_activity(ask: Ask, label: str, default: str = DEFAULT_ACTIVITY) -> str:
    return validate_activity(ask(label, default), default)


def prompt_text(ask: Ask, label: str, default: str | None = None, required: bool = False) -> str:
    return validate_text(ask(label, default), default, required=required)


def ask_until_valid(prompt, on_error: OnError | None = None):
    """Call `prompt` until it stops raising FormatError.

    Each rejection is reported through `on_error` and the same field is asked
    again; nothing entered in earlier fields is lost.
    """
    while True:
        try:
            return prompt()
        except FormatError as e:
            logger.info(f"FIELD_REJECTED error={e}")
            if on_error is not None:
                on_error(e)


def collect_entry(ask: Ask, repository, on_error: OnError | None = None, today: date | None = None) -> TimeEntry:
    """Prompt for every field of a new entry, pre-filled from the last one.

    Order: date, start, end, project ID, project directory, description,
    activity.
    """
    last = repository.last_entry()
    default_date = last.date or (today or date.today()).isoformat()

    entry_date = ask_until_valid(lambda: prompt_date(ask, "Date (YYYY-MM-DD)", default_date), on_error)
    start = ask_until_valid(lambda: prompt_time(ask, "Start time (HH:MM)", last.end_time), on_error)
    end = ask_until_valid(lambda: prompt_time(ask, "End time (HH:MM)", None), on_error)
    project_id = ask_until_valid(lambda: prompt_project_id(ask, "Project ID", last.project_id), on_error)

    # Reference store first, then whatever the last entry used
    directory_default = repository.project_directory(project_id) or last.project_directory
    project_directory = ask_until_valid(
        lambda: prompt_text(ask, "Project directory", directory_default, required=True),
        on_error,
    )
    description = prompt_text(ask, "Description")
    activity = ask_until_valid(
        lambda: prompt_activity(ask, f"Activity ({'/'.join(ACTIVITIES)})", DEFAULT_ACTIVITY),
        on_error,
    )

    return TimeEntry(
        date=entry_date,
        start=start,
        end=end,
        project_id=project_id,
        project_directory=project_directory,
        description=description,
        activity=activity,
    )
