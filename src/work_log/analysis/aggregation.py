"""Totals, filters and statistics over in-memory record lists.

Everything here is pure: inputs are never mutated and nothing is persisted.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from work_log.core.models import ProjectEntry, WorkRecord, to_hours


@dataclass(frozen=True)
class AdminStats:
    """Summary numbers for the admin view."""

    record_count: int
    total_hours: float
    developer_count: int
    average_hours_per_day: float


@dataclass(frozen=True)
class MemberStats:
    """Summary numbers for one developer's month."""

    total_hours: float
    days_logged: int


def calculate_total_hours(projects: Iterable[Union[ProjectEntry, Mapping[str, Any]]]) -> float:
    """Sum working hours, counting missing or non-numeric values as zero.

    Args:
        projects: ProjectEntry objects or their document mappings

    Returns:
        Total hours
    """
    total = 0.0
    for project in projects:
        if isinstance(project, ProjectEntry):
            total += to_hours(project.working_hours)
        else:
            total += to_hours(project.get("workingHours"))
    return total


def _newest_first(records: Iterable[WorkRecord]) -> list[WorkRecord]:
    # sorted() is stable, so same-day records keep their input order
    return sorted(records, key=lambda r: r.date, reverse=True)


def filter_member_records(
    records: Iterable[WorkRecord], developer_name: str, month: str
) -> list[WorkRecord]:
    """Records of one developer in one ``YYYY-MM`` month, newest first."""
    mine = [r for r in records if r.developer_name == developer_name]
    return _newest_first(r for r in mine if r.month == month)


def filter_admin_records(
    records: Iterable[WorkRecord],
    month: Optional[str] = None,
    developers: Optional[Iterable[str]] = None,
) -> list[WorkRecord]:
    """Records matching an optional month and developer set, newest first.

    Args:
        records: Records to filter
        month: ``YYYY-MM`` to match exactly; empty or None matches all
        developers: Names to keep; empty or None keeps everyone

    Returns:
        Filtered records sorted by date descending
    """
    chosen = set(developers or ())
    filtered = []
    for record in records:
        if month and record.month != month:
            continue
        if chosen and record.developer_name not in chosen:
            continue
        filtered.append(record)
    return _newest_first(filtered)


def list_developers(records: Iterable[WorkRecord]) -> list[str]:
    """Distinct developer names, sorted."""
    return sorted({r.developer_name for r in records})


def compute_admin_stats(records: Iterable[WorkRecord]) -> AdminStats:
    """Count, total hours, distinct developers and average hours per logged day."""
    records = list(records)
    total_hours = sum(r.total_hours for r in records)
    unique_days = len({r.date for r in records})
    return AdminStats(
        record_count=len(records),
        total_hours=total_hours,
        developer_count=len({r.developer_name for r in records}),
        average_hours_per_day=total_hours / unique_days if unique_days else 0.0,
    )


def compute_member_stats(records: Iterable[WorkRecord]) -> MemberStats:
    records = list(records)
    return MemberStats(
        total_hours=sum(r.total_hours for r in records),
        days_logged=len(records),
    )
