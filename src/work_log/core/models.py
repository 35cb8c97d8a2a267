"""Core data models for work logging."""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union
from uuid import uuid4

from work_log.core.errors import RecordValidationError

MAX_PROJECTS = 4
DEFAULT_ADMIN_NAME = "Admin Jay"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_hours(value: Any) -> float:
    """Coerce a working-hours value to float, treating junk as zero."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(hours) or math.isinf(hours):
        return 0.0
    return hours


def parse_day(value: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through).

    Raises:
        RecordValidationError: If the value is empty or not a real day
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        raise RecordValidationError("Date is required.")
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise RecordValidationError(f"Invalid date: {value}. Use YYYY-MM-DD")


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    return datetime.fromisoformat(value)


def _format_timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class ProjectEntry:
    """One task slice within a day.

    Attributes:
        project_name: Project the time was spent on
        task_details: What was done
        working_hours: Hours spent (zero marks a placeholder row)
        id: Identifier, unique within the parent record
    """

    project_name: str = ""
    task_details: str = ""
    working_hours: float = 0.0
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        self.project_name = self.project_name or ""
        self.task_details = self.task_details or ""
        self.working_hours = to_hours(self.working_hours)
        if not self.id:
            self.id = str(uuid4())

    @property
    def is_active(self) -> bool:
        """Whether this entry carries any data worth persisting."""
        return (
            self.project_name.strip() != ""
            or self.task_details.strip() != ""
            or self.working_hours > 0
        )

    @property
    def is_complete(self) -> bool:
        """Whether every field of an active entry is filled in."""
        return (
            self.project_name.strip() != ""
            and self.task_details.strip() != ""
            and self.working_hours > 0
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON document form."""
        return {
            "id": self.id,
            "projectName": self.project_name,
            "taskDetails": self.task_details,
            "workingHours": self.working_hours,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProjectEntry":
        """Create ProjectEntry from its JSON document form."""
        return cls(
            id=str(data.get("id") or ""),
            project_name=data.get("projectName") or "",
            task_details=data.get("taskDetails") or "",
            working_hours=to_hours(data.get("workingHours")),
        )


@dataclass
class WorkRecord:
    """One contributor's log for one calendar day.

    ``month``, ``total_projects`` and ``total_hours`` are derived from
    ``date`` and ``projects`` on every construction and cannot be passed in.

    Attributes:
        developer_name: Owning contributor (immutable after creation)
        date: Calendar day, unique per developer
        projects: Active project entries, in insertion order
        notes: Free text
        id: Globally unique identifier
        created_at: First save time
        updated_at: Last save time
    """

    developer_name: str
    date: date
    projects: list[ProjectEntry] = field(default_factory=list)
    notes: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    month: str = field(init=False)
    total_projects: int = field(init=False)
    total_hours: float = field(init=False)

    def __post_init__(self) -> None:
        self.date = parse_day(self.date)
        self.notes = self.notes or ""
        self.month = self.date.isoformat()[:7]
        self.total_projects = len(self.projects)
        self.total_hours = sum(p.working_hours for p in self.projects)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON document form."""
        return {
            "id": self.id,
            "developerName": self.developer_name,
            "date": self.date.isoformat(),
            "month": self.month,
            "projects": [p.to_dict() for p in self.projects],
            "totalProjects": self.total_projects,
            "totalHours": self.total_hours,
            "notes": self.notes,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkRecord":
        """Create WorkRecord from its JSON document form.

        Stored derived fields are ignored and recomputed.
        """
        return cls(
            id=str(data["id"]),
            developer_name=data["developerName"],
            date=data["date"],
            projects=[ProjectEntry.from_dict(p) for p in data.get("projects") or []],
            notes=data.get("notes") or "",
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )


def build_record(
    developer_name: str,
    date: Union[str, date],
    projects: Iterable[Union[ProjectEntry, Mapping[str, Any]]],
    notes: str = "",
    existing: Optional[WorkRecord] = None,
) -> WorkRecord:
    """Construct a validated record ready to be saved.

    Inactive project rows are dropped. When ``existing`` is given the id,
    owner and creation time are carried over from it.

    Args:
        developer_name: Owner for a new record (ignored on edit)
        date: Day of the log, ``YYYY-MM-DD``
        projects: Candidate project rows as entered
        notes: Free text
        existing: Record being edited, if any

    Returns:
        New WorkRecord

    Raises:
        RecordValidationError: If the input cannot form a valid record
    """
    day = parse_day(date)

    entries = [p if isinstance(p, ProjectEntry) else ProjectEntry.from_dict(p) for p in projects]
    if len(entries) > MAX_PROJECTS:
        raise RecordValidationError(f"A record can hold at most {MAX_PROJECTS} projects.")

    active = [p for p in entries if p.is_active]
    if not active:
        raise RecordValidationError("At least one project must be filled out.")
    if any(not p.is_complete for p in active):
        raise RecordValidationError(
            "All project fields (Name, Details, Hours > 0) must be completed for active entries."
        )

    if existing is not None:
        return WorkRecord(
            id=existing.id,
            developer_name=existing.developer_name,
            date=day,
            projects=active,
            notes=notes or "",
            created_at=existing.created_at,
            updated_at=utc_now(),
        )

    if not developer_name or not developer_name.strip():
        raise RecordValidationError("Developer name is required.")

    return WorkRecord(
        developer_name=developer_name,
        date=day,
        projects=active,
        notes=notes or "",
    )


class Role(str, Enum):
    """User role, chosen by name only."""

    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


@dataclass(frozen=True)
class User:
    """Session user. Never persisted."""

    id: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def resolve_user(name: str, admin_name: str = DEFAULT_ADMIN_NAME) -> User:
    """Pick a role for the entered name.

    The admin role is a display convenience, not access control.

    Raises:
        ValueError: If the name is blank
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValueError("Name is required")

    if trimmed == admin_name:
        return User(id="admin", name=trimmed, role=Role.ADMIN)
    return User(id=str(uuid4()), name=trimmed, role=Role.MEMBER)
