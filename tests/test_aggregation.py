"""Tests for aggregation, filtering and report rendering."""

from io import StringIO

from rich.console import Console  # type: ignore[import-not-found]

from work_log.analysis.aggregation import (
    AdminStats,
    MemberStats,
    calculate_total_hours,
    compute_admin_stats,
    compute_member_stats,
    filter_admin_records,
    filter_member_records,
    list_developers,
)
from work_log.analysis.reports import ReportGenerator, format_hours
from work_log.core.models import ProjectEntry, WorkRecord


def _record(record_id: str, name: str, day: str, *hours: float, notes: str = "") -> WorkRecord:
    return WorkRecord(
        id=record_id,
        developer_name=name,
        date=day,
        projects=[
            ProjectEntry(project_name=f"P{i}", task_details="Work", working_hours=h)
            for i, h in enumerate(hours)
        ],
        notes=notes,
    )


RECORDS = [
    _record("a1", "Alice", "2025-11-03", 4, 3.5),
    _record("b1", "Bob", "2025-11-03", 6),
    _record("a2", "Alice", "2025-11-10", 8),
    _record("a0", "Alice", "2025-10-30", 2),
    _record("c1", "Carol", "2025-11-05", 5),
]


class TestCalculateTotalHours:
    """Test calculate_total_hours."""

    def test_sums_entries(self) -> None:
        projects = [ProjectEntry(working_hours=4), ProjectEntry(working_hours=3.5)]
        assert calculate_total_hours(projects) == 7.5

    def test_bad_values_count_as_zero(self) -> None:
        projects = [
            {"workingHours": "2"},
            {"workingHours": "abc"},
            {"workingHours": None},
            {},
        ]
        assert calculate_total_hours(projects) == 2

    def test_empty(self) -> None:
        assert calculate_total_hours([]) == 0


class TestFilters:
    """Test member and admin filters."""

    def test_member_filter(self) -> None:
        result = filter_member_records(RECORDS, "Alice", "2025-11")
        assert [r.id for r in result] == ["a2", "a1"]

    def test_member_filter_no_match(self) -> None:
        assert filter_member_records(RECORDS, "Alice", "2024-01") == []
        assert filter_member_records(RECORDS, "Nobody", "2025-11") == []

    def test_admin_filter_without_criteria(self) -> None:
        result = filter_admin_records(RECORDS)
        assert [r.id for r in result] == ["a2", "c1", "a1", "b1", "a0"]

    def test_admin_filter_by_month_and_developers(self) -> None:
        result = filter_admin_records(RECORDS, month="2025-11", developers=["Alice", "Carol"])
        assert [r.id for r in result] == ["a2", "c1", "a1"]

    def test_empty_criteria_match_everything(self) -> None:
        assert len(filter_admin_records(RECORDS, month="", developers=[])) == len(RECORDS)

    def test_same_day_keeps_input_order(self) -> None:
        """Ties on date keep their original relative order."""
        result = filter_admin_records(RECORDS, month="2025-11")
        same_day = [r.id for r in result if r.date.isoformat() == "2025-11-03"]
        assert same_day == ["a1", "b1"]

    def test_inputs_not_mutated(self) -> None:
        records = list(RECORDS)
        filter_admin_records(records, month="2025-11")
        assert records == RECORDS

    def test_list_developers(self) -> None:
        assert list_developers(RECORDS) == ["Alice", "Bob", "Carol"]


class TestStats:
    """Test statistics."""

    def test_admin_stats(self) -> None:
        """Average divides total hours by distinct dates, not records."""
        stats = compute_admin_stats(RECORDS)

        assert stats.record_count == 5
        assert stats.total_hours == 28.5
        assert stats.developer_count == 3
        assert stats.average_hours_per_day == 28.5 / 4

    def test_admin_stats_empty(self) -> None:
        assert compute_admin_stats([]) == AdminStats(0, 0, 0, 0.0)

    def test_member_stats(self) -> None:
        stats = compute_member_stats(filter_member_records(RECORDS, "Alice", "2025-11"))
        assert stats == MemberStats(total_hours=15.5, days_logged=2)


class TestReportGenerator:
    """Test rich rendering."""

    def _generator(self) -> tuple[ReportGenerator, StringIO]:
        buffer = StringIO()
        console = Console(file=buffer, width=200, no_color=True)
        return ReportGenerator(console), buffer

    def test_format_hours(self) -> None:
        assert format_hours(7.5) == "7.5h"
        assert format_hours(6) == "6.0h"
        assert format_hours(2.5 / 3, 2) == "0.83h"

    def test_admin_report(self) -> None:
        generator, buffer = self._generator()

        generator.admin_report(RECORDS, compute_admin_stats(RECORDS), "November")

        output = buffer.getvalue()
        assert "Team Overview - November" in output
        assert "Total Hours:" in output
        assert "28.5h" in output
        assert "Carol" in output

    def test_admin_report_empty(self) -> None:
        generator, buffer = self._generator()

        generator.admin_report([], compute_admin_stats([]))

        assert "No records match your filters." in buffer.getvalue()

    def test_member_report_empty(self) -> None:
        generator, buffer = self._generator()

        generator.member_report([], compute_member_stats([]), "Alice", "2025-11")

        output = buffer.getvalue()
        assert "No records found for this month." in output
        assert "0 days" in output

    def test_markup_in_text_is_escaped(self) -> None:
        generator, buffer = self._generator()
        record = _record("x1", "Dev", "2025-11-03", 1, notes="[bold]not markup[/bold]")

        generator.admin_report([record], compute_admin_stats([record]))

        assert "[bold]not markup[/bold]" in buffer.getvalue()
