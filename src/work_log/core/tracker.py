"""Core work logging engine."""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from work_log.analysis.aggregation import filter_admin_records, filter_member_records
from work_log.core.cloud import CloudRecordStore
from work_log.core.config import ConfigManager
from work_log.core.errors import DuplicateDateError, RecordNotFoundError
from work_log.core.models import ProjectEntry, User, WorkRecord, build_record, parse_day
from work_log.core.storage import LocalRecordStore
from work_log.core.store import RecordStore

logger = logging.getLogger(__name__)

ProjectInput = Union[ProjectEntry, Mapping[str, Any]]

DUPLICATE_DATE_MESSAGE = "A record for this date already exists. Please edit the existing record."


def create_store(
    config: ConfigManager,
    backend: Optional[str] = None,
    data_dir: Optional[Path] = None,
) -> RecordStore:
    """Build the record store selected in config (not yet opened).

    Args:
        config: Configuration manager
        backend: Override for ``storage.backend`` ('local' or 'cloud')
        data_dir: Override for ``general.data_dir``
    """
    backend = backend or config.get("storage.backend", "local")
    if backend == "cloud":
        return CloudRecordStore(
            database_url=config.database_url(),
            table=config.get("cloud.table"),
            channel=config.get("cloud.channel"),
            poll_interval=float(config.get("cloud.poll_interval", 5)),
        )
    if backend == "local":
        return LocalRecordStore(data_dir or config.data_dir())
    raise ValueError(f"Unknown storage backend: {backend}")


class WorkTracker:
    """Validated record operations on top of a record store."""

    def __init__(self, store: RecordStore, recheck_date_on_edit: bool = False):
        """Initialize work tracker.

        Args:
            store: Open record store
            recheck_date_on_edit: Reject edits that move a record onto
                another of the owner's dates
        """
        self.store = store
        self.recheck_date_on_edit = recheck_date_on_edit

    def records(self) -> list[WorkRecord]:
        """All records currently in the store."""
        return self.store.list_records()

    def get_record(self, record_id: str) -> WorkRecord:
        """Find a record by id.

        Raises:
            RecordNotFoundError: If no record has that id
        """
        for record in self.store.list_records():
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"Record not found: {record_id}")

    def existing_dates(self, developer_name: str, exclude_id: Optional[str] = None) -> set[date]:
        """Days the developer already has records for."""
        return {
            r.date
            for r in self.store.list_records()
            if r.developer_name == developer_name and r.id != exclude_id
        }

    def create_record(
        self,
        user: User,
        day: Union[str, date],
        projects: Iterable[ProjectInput],
        notes: str = "",
    ) -> WorkRecord:
        """Log a new day for a user.

        Raises:
            DuplicateDateError: If the user already logged that day
            RecordValidationError: If the input is invalid
        """
        parsed = parse_day(day)
        if parsed in self.existing_dates(user.name):
            raise DuplicateDateError(DUPLICATE_DATE_MESSAGE)

        record = build_record(user.name, parsed, projects, notes)
        stored = self.store.save(record)
        logger.info(f"Created record {stored.id} for {stored.developer_name} on {stored.date}")
        return stored

    def update_record(
        self,
        record_id: str,
        day: Union[str, date],
        projects: Iterable[ProjectInput],
        notes: str = "",
    ) -> WorkRecord:
        """Replace a record's content. The owner never changes.

        Raises:
            RecordNotFoundError: If the record does not exist
            DuplicateDateError: If rechecking is on and the new date collides
            RecordValidationError: If the input is invalid
        """
        existing = self.get_record(record_id)
        parsed = parse_day(day)

        if self.recheck_date_on_edit and parsed != existing.date:
            if parsed in self.existing_dates(existing.developer_name, exclude_id=existing.id):
                raise DuplicateDateError(DUPLICATE_DATE_MESSAGE)

        record = build_record(existing.developer_name, parsed, projects, notes, existing=existing)
        stored = self.store.save(record)
        logger.info(f"Updated record {stored.id}")
        return stored

    def delete_record(self, record_id: str) -> None:
        self.store.delete(record_id)

    def delete_developer(self, developer_name: str) -> int:
        """Remove every record of a developer."""
        return self.store.delete_by_owner(developer_name)

    def member_view(self, user: User, month: Optional[str] = None) -> list[WorkRecord]:
        """The user's records for a month (default: current), newest first."""
        month = month or date.today().isoformat()[:7]
        return filter_member_records(self.store.list_records(), user.name, month)

    def admin_view(
        self,
        month: Optional[str] = None,
        developers: Optional[Iterable[str]] = None,
    ) -> list[WorkRecord]:
        """All records filtered by optional month and developers, newest first."""
        return filter_admin_records(self.store.list_records(), month, developers)
