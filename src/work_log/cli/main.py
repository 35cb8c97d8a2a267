"""Main CLI application."""

import json
import sys
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape

from work_log import __version__
from work_log.analysis.aggregation import (
    compute_admin_stats,
    compute_member_stats,
    filter_admin_records,
)
from work_log.analysis.reports import ReportGenerator, format_hours
from work_log.cli import config_commands
from work_log.cli.config_commands import config
from work_log.core.cloud import CloudRecordStore
from work_log.core.config import ConfigManager
from work_log.core.errors import (
    ChannelError,
    NotConfiguredError,
    SchemaMissingError,
    WorkLogError,
)
from work_log.core.migration import migrate_local_data
from work_log.core.models import ProjectEntry, User, resolve_user
from work_log.core.storage import LocalRecordStore
from work_log.core.store import RecordStore
from work_log.core.tracker import WorkTracker, create_store
from work_log.export_import.csv_format import CSVExporter, export_filename
from work_log.logging_config import setup_logging

console = Console()
error_console = Console(stderr=True)


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def report_error(error: Exception) -> NoReturn:
    """Print an error with any remediation hint, then exit."""
    if isinstance(error, NotConfiguredError):
        error_console.print(f"[red]Not connected:[/red] {escape(str(error))}")
        error_console.print(
            "Set it with: [cyan]work-log config set cloud.database_url postgresql://...[/cyan]"
        )
        sys.exit(1)
    if isinstance(error, SchemaMissingError):
        error_console.print("[red]Database setup required.[/red]")
        error_console.print(str(error), markup=False, highlight=False)
        error_console.print("Or run: [cyan]work-log db init[/cyan]")
        sys.exit(1)
    fail(str(error))


def get_config(ctx: click.Context) -> ConfigManager:
    """Load configuration once per invocation and set up logging."""
    obj = ctx.find_root().obj
    if "config" not in obj:
        config_path = obj.get("config_path")
        try:
            obj["config"] = ConfigManager(Path(config_path) if config_path else None)
        except ValueError as e:
            fail(str(e))
        setup_logging(obj["config"].get("logging.level", "WARNING"), obj["config"].get("logging.file"))
    return obj["config"]


def get_user(ctx: click.Context, name: str) -> User:
    """Resolve the entered name to a user with a role."""
    try:
        return resolve_user(name, get_config(ctx).get("general.admin_name"))
    except ValueError as e:
        fail(str(e))


@contextmanager
def open_store(ctx: click.Context, backend: Optional[str] = None) -> Iterator[RecordStore]:
    """Open the configured store for the duration of a command."""
    config_mgr = get_config(ctx)
    obj = ctx.find_root().obj
    data_dir = obj.get("data_dir")
    store = create_store(
        config_mgr,
        backend=backend or obj.get("backend"),
        data_dir=Path(data_dir) if data_dir else None,
    )
    try:
        with store:
            yield store
    except (WorkLogError, ValueError) as e:
        report_error(e)


@contextmanager
def open_tracker(ctx: click.Context) -> Iterator[WorkTracker]:
    """Open the configured store wrapped in a WorkTracker."""
    recheck = bool(get_config(ctx).get("records.recheck_date_on_edit", False))
    with open_store(ctx) as store:
        yield WorkTracker(store, recheck_date_on_edit=recheck)


def parse_projects(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> list[ProjectEntry]:
    """Turn repeated 'Name|Details|Hours' options into project entries."""
    projects = []
    for value in values:
        parts = [part.strip() for part in value.split("|")]
        if len(parts) != 3:
            raise click.BadParameter(f"Expected 'Name|Details|Hours', got {value!r}")
        name, details, hours = parts
        try:
            hours_value = float(hours)
        except ValueError:
            raise click.BadParameter(f"Hours must be a number, got {hours!r}")
        projects.append(ProjectEntry(project_name=name, task_details=details, working_hours=hours_value))
    return projects


def validate_month(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise click.BadParameter("Use YYYY-MM")
    return value


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(), help="Config file path")
@click.option("--data-dir", help="Custom data directory", type=click.Path())
@click.option(
    "--backend",
    type=click.Choice(["local", "cloud"]),
    help="Storage backend (overrides storage.backend)",
)
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    data_dir: Optional[str],
    backend: Optional[str],
    no_color: bool,
) -> None:
    """Work Log - daily per-project work hour logging.

    Log your hours per project each day; the admin reviews and exports
    everyone's records.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["data_dir"] = data_dir
    ctx.obj["backend"] = backend

    if no_color:
        for target in (console, error_console, config_commands.console, config_commands.error_console):
            target.no_color = True


cli.add_command(config)


@cli.command()
@click.option("-u", "--user", "user_name", required=True, help="Your name")
@click.option("-d", "--date", "day", help="Day to log (YYYY-MM-DD), defaults to today")
@click.option(
    "-p",
    "--project",
    "projects",
    multiple=True,
    callback=parse_projects,
    help="'Name|Details|Hours', repeat for up to 4 projects",
)
@click.option("-n", "--notes", default="", help="Notes for the day")
@click.pass_context
def add(
    ctx: click.Context,
    user_name: str,
    day: Optional[str],
    projects: list[ProjectEntry],
    notes: str,
) -> None:
    """Log a new day.

    Example:
        work-log add -u "John Doe" -p "Frontend Revamp|Tailwind config|4" -p "API|Auth endpoints|3.5"
    """
    user = get_user(ctx, user_name)

    with open_tracker(ctx) as tracker:
        record = tracker.create_record(user, day or date.today(), projects, notes)

    console.print(f"[green]✓[/green] Logged {format_hours(record.total_hours)} for {record.date}")
    console.print(f"  Projects: {record.total_projects}")
    console.print(f"  Record ID: {record.id}")


@cli.command()
@click.argument("record_id")
@click.option("-d", "--date", "day", help="New day (YYYY-MM-DD)")
@click.option(
    "-p",
    "--project",
    "projects",
    multiple=True,
    callback=parse_projects,
    help="'Name|Details|Hours'; replaces all projects when given",
)
@click.option("-n", "--notes", default=None, help="Replacement notes")
@click.pass_context
def edit(
    ctx: click.Context,
    record_id: str,
    day: Optional[str],
    projects: list[ProjectEntry],
    notes: Optional[str],
) -> None:
    """Edit a record. Fields not given keep their current values.

    Example:
        work-log edit 3f2a... -p "Database Migration|Schema updates|6"
    """
    with open_tracker(ctx) as tracker:
        existing = tracker.get_record(record_id)
        record = tracker.update_record(
            record_id,
            day or existing.date,
            projects or existing.projects,
            existing.notes if notes is None else notes,
        )

    console.print(f"[green]✓[/green] Updated record for {record.date}")
    console.print(f"  Total: {format_hours(record.total_hours)}")


@cli.command()
@click.argument("record_id")
@click.pass_context
def delete(ctx: click.Context, record_id: str) -> None:
    """Delete a record.

    Example:
        work-log delete 3f2a...
    """
    with open_tracker(ctx) as tracker:
        tracker.delete_record(record_id)

    console.print(f"[yellow]✓[/yellow] Deleted record {record_id}")


@cli.command()
@click.argument("developer_name")
@click.confirmation_option(prompt="Delete every record of this developer?")
@click.pass_context
def purge(ctx: click.Context, developer_name: str) -> None:
    """Delete all records of one developer."""
    with open_tracker(ctx) as tracker:
        removed = tracker.delete_developer(developer_name)

    console.print(f"[yellow]✓[/yellow] Deleted {removed} records of {escape(developer_name)}")


@cli.command("list")
@click.option("-u", "--user", "user_name", required=True, help="Your name")
@click.option("-m", "--month", callback=validate_month, help="Month (YYYY-MM), defaults to this month")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_records(ctx: click.Context, user_name: str, month: Optional[str], as_json: bool) -> None:
    """Show your records for a month.

    Example:
        work-log list -u "John Doe" -m 2025-11
    """
    user = get_user(ctx, user_name)
    month = month or date.today().isoformat()[:7]

    with open_tracker(ctx) as tracker:
        records = tracker.member_view(user, month)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    ReportGenerator(console).member_report(records, compute_member_stats(records), user.name, month)


@cli.command()
@click.option("-u", "--user", "user_name", required=True, help="Admin name")
@click.option("-m", "--month", callback=validate_month, help="Month (YYYY-MM); all time if omitted")
@click.option("--developer", "developers", multiple=True, help="Only these developers (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def admin(
    ctx: click.Context,
    user_name: str,
    month: Optional[str],
    developers: tuple[str, ...],
    as_json: bool,
) -> None:
    """Team overview with statistics.

    Example:
        work-log admin -u "Admin Jay" -m 2025-11 --developer "Jane Smith"
    """
    user = get_user(ctx, user_name)
    if not user.is_admin:
        fail("The team overview is only available to the admin.")

    with open_tracker(ctx) as tracker:
        records = tracker.admin_view(month, developers)

    stats = compute_admin_stats(records)
    if as_json:
        data = {
            "stats": {
                "recordCount": stats.record_count,
                "totalHours": stats.total_hours,
                "developerCount": stats.developer_count,
                "averageHoursPerDay": stats.average_hours_per_day,
            },
            "records": [r.to_dict() for r in records],
        }
        click.echo(json.dumps(data, indent=2))
        return

    ReportGenerator(console).admin_report(records, stats, _filter_label(month, developers))


def _filter_label(month: Optional[str], developers: tuple[str, ...]) -> str:
    parts = [month or "All time"]
    if developers:
        parts.append(", ".join(developers))
    return " / ".join(parts)


@cli.command()
@click.option("-u", "--user", "user_name", required=True, help="Your name")
@click.option("-m", "--month", callback=validate_month, help="Month (YYYY-MM)")
@click.option("--developer", "developers", multiple=True, help="Admin only: only these developers")
@click.option("-o", "--output", type=click.Path(), help="Output file")
@click.pass_context
def export(
    ctx: click.Context,
    user_name: str,
    month: Optional[str],
    developers: tuple[str, ...],
    output: Optional[str],
) -> None:
    """Export records to CSV.

    The admin exports the filtered team view; everyone else exports their
    own month (this month by default).

    Example:
        work-log export -u "Admin Jay" -m 2025-11
    """
    user = get_user(ctx, user_name)
    config_mgr = get_config(ctx)

    with open_tracker(ctx) as tracker:
        if user.is_admin:
            records = tracker.admin_view(month, developers)
        else:
            records = tracker.member_view(user, month)

    if output:
        output_path = Path(output)
    else:
        output_path = Path(config_mgr.get("export.directory", ".")).expanduser() / export_filename()

    try:
        CSVExporter(output_path).export_records(records)
    except OSError as e:
        fail(f"Could not write {output_path}: {e}")

    console.print(f"[green]✓[/green] Exported {len(records)} records to {output_path}")


@cli.command()
@click.pass_context
def migrate(ctx: click.Context) -> None:
    """Copy local records into the cloud database.

    Local data is kept; running it again overwrites instead of duplicating.
    """
    config_mgr = get_config(ctx)
    data_dir = ctx.find_root().obj.get("data_dir")
    local_store = LocalRecordStore(Path(data_dir) if data_dir else config_mgr.data_dir())

    with open_store(ctx, backend="cloud") as cloud_store:
        count = migrate_local_data(local_store, cloud_store)  # type: ignore[arg-type]

    console.print(f"[green]✓[/green] Successfully migrated {count} local records to the cloud.")


@cli.command()
@click.option("-m", "--month", callback=validate_month, help="Month (YYYY-MM)")
@click.option("--developer", "developers", multiple=True, help="Only these developers")
@click.pass_context
def watch(ctx: click.Context, month: Optional[str], developers: tuple[str, ...]) -> None:
    """Show the team view and refresh it whenever the cloud table changes.

    Press Ctrl+C to stop.
    """
    report_gen = ReportGenerator(console)
    label = _filter_label(month, developers)
    fatal: list[Exception] = []
    stop = threading.Event()

    def on_data(records: list) -> None:
        filtered = filter_admin_records(records, month, developers)
        report_gen.admin_report(filtered, compute_admin_stats(filtered), label)
        console.print(f"[dim]Synced {datetime.now():%H:%M:%S}[/dim]")

    def on_error(error: Exception) -> None:
        if isinstance(error, ChannelError):
            error_console.print(f"[yellow]Live updates paused:[/yellow] {escape(str(error))}")
            return
        if isinstance(error, (NotConfiguredError, SchemaMissingError)):
            fatal.append(error)
            stop.set()
            return
        error_console.print(f"[red]Sync error:[/red] {escape(str(error))}")

    with open_store(ctx, backend="cloud") as store:
        subscription = store.subscribe(on_data, on_error)  # type: ignore[attr-defined]
        try:
            while not stop.wait(0.5):
                pass
        except KeyboardInterrupt:
            pass
        finally:
            subscription()

    if fatal:
        report_error(fatal[0])


@cli.group()
def db() -> None:
    """Cloud database setup."""
    pass


@db.command("sql")
@click.pass_context
def db_sql(ctx: click.Context) -> None:
    """Print the SQL that creates the records table."""
    config_mgr = get_config(ctx)
    store = CloudRecordStore(table=config_mgr.get("cloud.table"), channel=config_mgr.get("cloud.channel"))
    click.echo(store.setup_sql)


@db.command("init")
@click.pass_context
def db_init(ctx: click.Context) -> None:
    """Create the records table, access policy and change trigger."""
    with open_store(ctx, backend="cloud") as store:
        store.install_schema()  # type: ignore[attr-defined]

    console.print("[green]✓[/green] Database is ready")


if __name__ == "__main__":
    cli(obj={})
