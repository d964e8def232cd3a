"""Text reports: the recent-entries table and the self-check diagnostics."""
import importlib.util
import logging
import platform
import sys
from datetime import datetime

import introspect
from config import Settings, expand_path, is_database_url
from db import StorageAdapter, get_adapter, quote_ident

logger = logging.getLogger(__name__)

# Import name that has to be installed for each driver
DRIVER_MODULES = {
    "sqlalchemy": "sqlalchemy",
    "sqlite3": "sqlite3",
}


def _cell(value) -> str:
    return "" if value is None else str(value)


def format_table(header: list[str], rows: list[tuple]) -> str:
    """Render rows as a pipe-separated table with aligned columns."""
    cells = [[_cell(v) for v in row] for row in rows]
    widths = [len(name) for name in header]
    for row in cells:
        for i, value in enumerate(row[: len(widths)]):
            widths[i] = max(widths[i], len(value))

    def line(values):
        padded = [v.ljust(widths[i]) for i, v in enumerate(values[: len(widths)])]
        return "| " + " | ".join(padded) + " |"

    separator = "|" + "+".join("-" * (w + 2) for w in widths) + "|"
    return "\n".join([line(header), separator] + [line(row) for row in cells])


def recent_entries_report(repository, limit: int | None = None) -> str:
    """Recent entries, oldest first, as a text table."""
    header = repository.entry_columns()
    if not header:
        return f"No columns found for table '{repository.table}'."
    rows = repository.recent_entries(limit)
    if not rows:
        return f"No recent entries in '{repository.table}'."
    # Fetched newest first; show them in the order they were entered
    return format_table(header, list(reversed(rows)))


def _driver_check(settings: Settings) -> dict:
    module = DRIVER_MODULES[settings.driver]
    available = importlib.util.find_spec(module) is not None
    version = None
    if available:
        version = get_adapter(settings.driver).version()
    return {"driver": settings.driver, "available": available, "version": version}


def _path_check(location: str | None) -> dict:
    if not location:
        return {"configured": None, "expanded": None, "exists": False, "url": False}
    if is_database_url(location):
        # Cannot check a server database from the filesystem; the connectivity check will tell
        return {"configured": location, "expanded": location, "exists": True, "url": True}
    expanded = expand_path(location)
    return {"configured": location, "expanded": str(expanded), "exists": expanded.is_file(), "url": False}


def check_store(adapter: StorageAdapter, location: str, table: str) -> dict:
    """Open a store, count rows in `table` and list its writable columns.

    Failures are captured in the result rather than raised.
    """
    result = {"ok": False, "count": None, "columns": [], "error": None}
    handle = None
    try:
        handle = adapter.open(location)
        rows = adapter.select(handle, f"SELECT COUNT(*) FROM {quote_ident(table)}")
        result["count"] = rows[0][0] if rows else 0
        result["columns"] = introspect.columns(handle, table)
        result["ok"] = True
    except Exception as e:
        result["error"] = str(e)
        logger.warning(f"STORE_CHECK_FAILED location={location} table={table} error={e}")
    finally:
        if handle is not None:
            adapter.close(handle)
    return result


def recommendations(driver: dict, primary_path: dict, reference_path: dict,
                    primary_check: dict | None, reference_check: dict | None,
                    settings: Settings) -> list[str]:
    """Turn failed checks into advice; generic tips when nothing failed."""
    tips = []
    if not driver["available"]:
        tips.append(f"Install the '{driver['driver']}' driver (pip install {driver['driver']}) "
                    "or switch with --driver.")
    if not primary_path["exists"]:
        tips.append(f"Primary database not found at {primary_path['expanded']}; "
                    "check --primary-db / TIMELOG_PRIMARY_DB.")
    elif primary_check is not None and not primary_check["ok"]:
        tips.append(f"Primary database could not be queried; check that table "
                    f"'{settings.primary_table}' exists and the file is readable.")
    if not reference_path["configured"]:
        tips.append("No reference database configured; set TIMELOG_REFERENCE_DB to enable "
                    "project directory lookups.")
    elif not reference_path["exists"]:
        tips.append(f"Reference database not found at {reference_path['expanded']}; install or "
                    "check the reference source (--reference-db / TIMELOG_REFERENCE_DB). "
                    "Project lookups are disabled until then.")
    elif reference_check is not None and not reference_check["ok"]:
        tips.append(f"Reference database could not be queried; check that table "
                    f"'{settings.reference_table}' exists.")
    if not tips:
        tips = [
            "All checks passed.",
            "If entries still fail to save, run with -vv to log the SQL being sent.",
            "Use 'timelog recent' to confirm new rows are reaching the primary table.",
        ]
    return tips


def _check_lines(name: str, check: dict | None, skip_reason: str = "no database file") -> list[str]:
    if check is None:
        return [f"  {name}: skipped ({skip_reason})"]
    if check["ok"]:
        columns = ", ".join(check["columns"]) or "(none)"
        return [
            f"  {name}: OK, {check['count']} rows",
            f"    writable columns: {columns}",
        ]
    return [f"  {name}: FAILED ({check['error']})"]


def diagnostics_report(settings: Settings, adapter: StorageAdapter | None = None) -> str:
    """Environment, driver, paths, tables, live checks and recommendations."""
    lines = [
        "timelog diagnostics",
        "===================",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "Environment",
        f"  Python: {sys.version.split()[0]} ({platform.python_implementation()})",
        f"  Platform: {platform.platform()}",
        "",
    ]

    driver = _driver_check(settings)
    lines += [
        "Storage driver",
        f"  Configured: {driver['driver']}",
        f"  Available: {'yes' if driver['available'] else 'no'}",
        f"  Version: {driver['version'] or 'n/a'}",
        "",
    ]

    primary_path = _path_check(settings.primary_db)
    reference_path = _path_check(settings.reference_db)
    lines.append("Paths")
    for name, path in (("Primary", primary_path), ("Reference", reference_path)):
        if path["configured"] is None:
            lines.append(f"  {name}: not configured")
            continue
        lines.append(f"  {name}: {path['configured']}")
        lines.append(f"    expanded: {path['expanded']}")
        lines.append(f"    exists: {'yes' if path['exists'] else 'no'}")
    lines += [
        "",
        "Tables",
        f"  Primary table: {settings.primary_table}",
        f"  Reference table: {settings.reference_table}",
        "",
    ]

    primary_check = reference_check = None
    if driver["available"]:
        adapter = adapter or get_adapter(settings.driver)
        if primary_path["exists"]:
            primary_check = check_store(adapter, settings.primary_db, settings.primary_table)
        if reference_path["exists"]:
            reference_check = check_store(adapter, settings.reference_db, settings.reference_table)

    lines.append("Connectivity")
    skip_reason = "no database file" if driver["available"] else "driver not installed"
    lines += _check_lines("Primary", primary_check, skip_reason)
    lines += _check_lines("Reference", reference_check, skip_reason)
    lines.append("")

    lines.append("Recommendations")
    tips = recommendations(driver, primary_path, reference_path, primary_check, reference_check, settings)
    lines += [f"  - {tip}" for tip in tips]

    return "\n".join(lines) + "\n"
