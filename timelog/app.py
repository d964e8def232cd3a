import argparse
import logging
import os
import sys

from pydantic import ValidationError
from rich.console import Console
from rich.prompt import Confirm, Prompt

from config import DRIVERS, Settings
from db import StoreContext
from errors import DatabaseConnectionError, FormatError, SchemaError
from prompts import collect_entry
from report import diagnostics_report, recent_entries_report
from repository import EntryRepository

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_ABORTED = 130


def configure_logging(verbosity: int = 0):
    """Quiet by default; -v for INFO, -vv for DEBUG, or TIMELOG_LOG_LEVEL."""
    level_name = os.getenv("TIMELOG_LOG_LEVEL")
    if level_name:
        level = getattr(logging, level_name.upper(), logging.WARNING)
    elif verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def terminal_ask(console: Console):
    """Build an ask(label, default) callable on top of rich prompts."""

    def ask(label: str, default: str | None) -> str:
        if default:
            return Prompt.ask(label, default=str(default), console=console)
        return Prompt.ask(label, default="", show_default=False, console=console)

    return ask


def add_entry_command(settings: Settings, console: Console, ask=None, confirm=None) -> int:
    """Show recent entries, prompt for a new one and save it."""
    ask = ask or terminal_ask(console)
    confirm = confirm or (lambda question: Confirm.ask(question, console=console))

    with StoreContext(settings) as context:
        try:
            context.ensure_connected()
        except DatabaseConnectionError as e:
            logger.error(f"ADD_ABORTED error={e}")
            console.print(f"[red]Cannot open the primary database:[/red] {e}")
            return EXIT_FAILED

        repository = EntryRepository(context)
        console.print(recent_entries_report(repository), markup=False, highlight=False)

        def show_error(error: FormatError):
            console.print(f"[red]{error}[/red]")

        try:
            entry = collect_entry(ask, repository, on_error=show_error)
        except (KeyboardInterrupt, EOFError):
            console.print("\nAborted; nothing was written.")
            return EXIT_ABORTED

        while True:
            try:
                new_id = repository.add_entry(entry.to_row())
            except (SchemaError, DatabaseConnectionError) as e:
                console.print(f"[red]Cannot save entry:[/red] {e}")
                new_id = None
            if new_id is not None:
                console.print(f"Saved entry {new_id}.")
                return EXIT_OK
            if not confirm("Saving failed. Try again?"):
                break
            # Reopened on the next attempt
            context.close()

        # Keep what was typed visible so it can be re-entered later
        console.print("Entry was not saved:")
        for column, value in entry.to_row().items():
            console.print(f"  {column}: {value}", markup=False, highlight=False)
        return EXIT_FAILED


def recent_command(settings: Settings, console: Console) -> int:
    """Print the recent-entries table."""
    with StoreContext(settings) as context:
        try:
            context.ensure_connected()
        except DatabaseConnectionError as e:
            console.print(f"[red]Cannot open the primary database:[/red] {e}")
            return EXIT_FAILED
        report = recent_entries_report(EntryRepository(context))
    console.print(report, markup=False, highlight=False)
    return EXIT_OK


def diagnose_command(settings: Settings, console: Console) -> int:
    """Print the diagnostics report."""
    console.print(diagnostics_report(settings), markup=False, highlight=False)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timelog",
        description="Log time-tracking entries into a local SQL database.",
    )
    parser.add_argument("--primary-db", help="entries database file (or database URL)")
    parser.add_argument("--reference-db", help="project reference database file")
    parser.add_argument("--primary-table", help="entries table name (default zTimeSpent)")
    parser.add_argument("--reference-table", help="project table name (default tenKprojects)")
    parser.add_argument("--limit", type=int, dest="recent_limit", help="recent entries to show (default 20)")
    parser.add_argument("--driver", choices=DRIVERS, help="storage driver (default sqlalchemy)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for SQL)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("add", help="add a time entry interactively")
    sub.add_parser("recent", help="show recent entries")
    sub.add_parser("diagnose", help="check configuration and database connectivity")
    return parser


def main(argv=None, console: Console | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    console = console or Console()

    try:
        settings = Settings.from_env(
            primary_db=args.primary_db,
            reference_db=args.reference_db,
            primary_table=args.primary_table,
            reference_table=args.reference_table,
            recent_limit=args.recent_limit,
            driver=args.driver,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        return EXIT_USAGE

    if args.command == "add":
        return add_entry_command(settings, console)
    if args.command == "recent":
        return recent_command(settings, console)
    return diagnose_command(settings, console)


if __name__ == "__main__":
    sys.exit(main())
