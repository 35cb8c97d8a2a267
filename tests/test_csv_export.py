"""Tests for CSV export."""

from datetime import date
from pathlib import Path

from work_log.core.models import ProjectEntry, WorkRecord
from work_log.export_import import CSVExporter
from work_log.export_import.csv_format import (
    CSV_HEADERS,
    export_filename,
    format_projects,
    record_to_csv_row,
    records_to_csv,
)


def _record(notes: str = "Blocked on backend") -> WorkRecord:
    return WorkRecord(
        id="1",
        developer_name="John Doe",
        date="2025-11-16",
        projects=[
            ProjectEntry(project_name="Frontend Revamp", task_details="Tailwind config", working_hours=4),
            ProjectEntry(project_name="API Integration", task_details="Auth endpoints", working_hours=3.5),
        ],
        notes=notes,
    )


class TestCSVFormat:
    """Test CSV text generation."""

    def test_header_line(self) -> None:
        header = records_to_csv([]).split("\n")[0]
        assert header == "ID,Date,Developer,Total Hours,Notes,Projects (Name: Details [Hours])"
        assert header.split(",")[0:5] == CSV_HEADERS[0:5]

    def test_empty_export_is_header_only(self) -> None:
        assert records_to_csv([]) == ",".join(CSV_HEADERS)

    def test_projects_field(self) -> None:
        assert format_projects(_record()) == (
            "Frontend Revamp: Tailwind config [4h] | API Integration: Auth endpoints [3.5h]"
        )

    def test_row(self) -> None:
        row = record_to_csv_row(_record())
        assert row == (
            '1,2025-11-16,"John Doe",7.5,"Blocked on backend",'
            '"Frontend Revamp: Tailwind config [4h] | API Integration: Auth endpoints [3.5h]"'
        )

    def test_whole_hours_have_no_decimal(self) -> None:
        record = WorkRecord(
            id="2",
            developer_name="Jane Smith",
            date="2025-11-16",
            projects=[ProjectEntry(project_name="DB", task_details="Schema", working_hours=6)],
        )
        assert record_to_csv_row(record) == '2,2025-11-16,"Jane Smith",6,"","DB: Schema [6h]"'

    def test_embedded_quotes_are_doubled(self) -> None:
        row = record_to_csv_row(_record(notes='He said "hi"'))
        assert ',"He said ""hi""",' in row

    def test_commas_stay_inside_quotes(self) -> None:
        row = record_to_csv_row(_record(notes="one, two"))
        assert ',"one, two",' in row

    def test_one_line_per_record(self) -> None:
        text = records_to_csv([_record(), _record()])
        assert len(text.split("\n")) == 3
        assert not text.endswith("\n")

    def test_export_filename(self) -> None:
        assert export_filename(date(2025, 11, 16)) == "work_tracker_export_2025-11-16.csv"
        assert export_filename().startswith("work_tracker_export_")


class TestCSVExporter:
    """Test writing CSV files."""

    def test_export_records(self, temp_dir: Path) -> None:
        output = temp_dir / "out" / "export.csv"

        CSVExporter(output).export_records([_record(notes="Café")])

        content = output.read_text(encoding="utf-8")
        assert content.startswith("ID,Date,Developer")
        assert '"Café"' in content

    def test_file_extension(self, temp_dir: Path) -> None:
        assert CSVExporter(temp_dir / "x.csv").get_file_extension() == ".csv"
