"""Report rendering for work records."""

from typing import Optional

from rich.console import Console  # type: ignore[import-not-found]
from rich.markup import escape  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from work_log.analysis.aggregation import AdminStats, MemberStats
from work_log.core.models import WorkRecord


def format_hours(hours: float, places: int = 1) -> str:
    """Format hours for display, e.g. ``7.5h``."""
    return f"{hours:.{places}f}h"


class ReportGenerator:
    """Render record lists and statistics to a console."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize report generator.

        Args:
            console: Rich console for output. Creates default if None.
        """
        self.console = console or Console()

    def records_table(self, records: list[WorkRecord], title: str, show_developer: bool = True) -> Table:
        """Build a table with one row per record."""
        table = Table(title=title)
        table.add_column("Date", style="cyan")
        if show_developer:
            table.add_column("Developer", style="bold")
        table.add_column("Hours", style="magenta", justify="right")
        table.add_column("Projects", style="blue")
        table.add_column("Notes", style="dim")
        table.add_column("ID", style="dim")

        for record in records:
            projects = "\n".join(
                escape(f"{p.project_name}: {p.task_details} [{p.working_hours:g}h]")
                for p in record.projects
            )
            row = [record.date.isoformat()]
            if show_developer:
                row.append(escape(record.developer_name))
            row.extend(
                [
                    format_hours(record.total_hours),
                    projects,
                    escape(record.notes) or "-",
                    record.id,
                ]
            )
            table.add_row(*row)

        return table

    def member_report(self, records: list[WorkRecord], stats: MemberStats, developer_name: str, month: str) -> None:
        """Display one developer's month."""
        self.console.print(f"\n[bold cyan]{escape(developer_name)} - {month}[/bold cyan]\n")

        overview = Table(show_header=False, box=None, padding=(0, 2))
        overview.add_column(style="dim")
        overview.add_column(style="bold")
        overview.add_row("Total Hours:", format_hours(stats.total_hours, 2))
        overview.add_row("Days Logged:", f"{stats.days_logged} days")
        self.console.print(overview)
        self.console.print()

        if not records:
            self.console.print("[yellow]No records found for this month.[/yellow]")
            return

        self.console.print(self.records_table(records, "Daily Logs", show_developer=False))

    def admin_report(self, records: list[WorkRecord], stats: AdminStats, filter_label: str = "All records") -> None:
        """Display the filtered team view with its statistics."""
        self.console.print(f"\n[bold cyan]Team Overview - {escape(filter_label)}[/bold cyan]\n")

        overview = Table(show_header=False, box=None, padding=(0, 2))
        overview.add_column(style="dim")
        overview.add_column(style="bold")
        overview.add_row("Total Records:", str(stats.record_count))
        overview.add_row("Total Hours:", format_hours(stats.total_hours))
        overview.add_row("Active Devs:", str(stats.developer_count))
        overview.add_row("Avg Hours/Day:", format_hours(stats.average_hours_per_day))
        self.console.print(overview)
        self.console.print()

        if not records:
            self.console.print("[yellow]No records match your filters.[/yellow]")
            return

        self.console.print(self.records_table(records, "Records"))
