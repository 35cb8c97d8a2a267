"""CSV export of work records."""

from datetime import date
from typing import Any, Iterable, Optional

from work_log.core.models import WorkRecord
from work_log.export_import.base import Exporter

CSV_HEADERS = [
    "ID",
    "Date",
    "Developer",
    "Total Hours",
    "Notes",
    "Projects (Name: Details [Hours])",
]
PROJECT_SEPARATOR = " | "


def _format_number(value: float) -> str:
    """Print 6.0 as 6 and 7.5 as 7.5."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _quote(text: str) -> str:
    """Wrap free text in double quotes, doubling any inside."""
    return '"' + text.replace('"', '""') + '"'


def format_projects(record: WorkRecord) -> str:
    """All projects of a record as one ``name: details [Nh]`` field."""
    return PROJECT_SEPARATOR.join(
        f"{p.project_name}: {p.task_details} [{_format_number(p.working_hours)}h]"
        for p in record.projects
    )


def record_to_csv_row(record: WorkRecord) -> str:
    """One CSV line for a record, free-text fields quoted."""
    return ",".join(
        [
            record.id,
            record.date.isoformat(),
            _quote(record.developer_name),
            _format_number(record.total_hours),
            _quote(record.notes),
            _quote(format_projects(record)),
        ]
    )


def records_to_csv(records: Iterable[WorkRecord]) -> str:
    """Header line followed by one line per record."""
    lines = [",".join(CSV_HEADERS)]
    lines.extend(record_to_csv_row(r) for r in records)
    return "\n".join(lines)


def export_filename(day: Optional[date] = None) -> str:
    """Default export file name, stamped with the export day."""
    day = day or date.today()
    return f"work_tracker_export_{day.isoformat()}.csv"


class CSVExporter(Exporter):
    """Export work records to a CSV file. There is no CSV importer."""

    def get_file_extension(self) -> str:
        return ".csv"

    def export_records(self, records: list[WorkRecord], **kwargs: Any) -> None:
        """Write records to the output file as UTF-8 CSV.

        Args:
            records: Records to export
            **kwargs: Unused
        """
        self.ensure_output_path()
        with open(self.output_path, "w", encoding="utf-8", newline="") as f:
            f.write(records_to_csv(records))
