"""Local JSON slot storage with atomic writes and file locking."""

import json
import logging
import os
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Optional

from work_log.core.errors import StorageFault
from work_log.core.models import ProjectEntry, WorkRecord, utc_now
from work_log.core.store import RecordStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "daily_project_tracker_data"


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way.

    Args:
        file_obj: File object to lock
        exclusive: If True, acquire exclusive lock; if False, acquire shared lock
    """
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_NBLCK if exclusive else msvcrt.LK_NBRLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    """Unlock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


def seed_records(today: Optional[date] = None) -> list[WorkRecord]:
    """Sample records written to an empty store on first use."""
    today = today or date.today()
    return [
        WorkRecord(
            id="1",
            developer_name="John Doe",
            date=today,
            projects=[
                ProjectEntry(
                    id="p1",
                    project_name="Frontend Revamp",
                    task_details="Implemented new Tailwind config",
                    working_hours=4,
                ),
                ProjectEntry(
                    id="p2",
                    project_name="API Integration",
                    task_details="Connected auth endpoints",
                    working_hours=3.5,
                ),
            ],
            notes="Blocked on backend migration for user settings.",
        ),
        WorkRecord(
            id="2",
            developer_name="Jane Smith",
            date=today,
            projects=[
                ProjectEntry(
                    id="p3",
                    project_name="Database Migration",
                    task_details="Schema updates",
                    working_hours=6,
                ),
            ],
        ),
    ]


class LocalRecordStore(RecordStore):
    """Keeps the whole record collection in one JSON file.

    Every operation reads the full collection and writes it back; there is
    no row-level access. Safe only for a single writer.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize local store.

        Args:
            data_dir: Custom data directory. Defaults to ~/.work-log/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".work-log" / "data"

        self.data_dir = Path(data_dir)
        self.slot_file = self.data_dir / f"{STORAGE_KEY}.json"

    def _write_slot(self, rows: list[dict[str, Any]]) -> None:
        """Write the collection atomically using temporary file and rename."""
        temp_file = self.slot_file.with_suffix(".tmp")

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                _lock_file(f, exclusive=True)

                json.dump(rows, f, ensure_ascii=False)

                f.flush()
                os.fsync(f.fileno())

                _unlock_file(f)

            temp_file.replace(self.slot_file)

        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise StorageFault(f"Failed to write {self.slot_file}: {e}") from e

    def _read_slot(self) -> Optional[list[dict[str, Any]]]:
        """Read the raw collection, or None if the slot was never written."""
        if not self.slot_file.exists():
            return None

        try:
            with open(self.slot_file, encoding="utf-8") as f:
                _lock_file(f, exclusive=False)
                try:
                    rows = json.load(f)
                finally:
                    _unlock_file(f)
        except OSError as e:
            raise StorageFault(f"Failed to read {self.slot_file}: {e}") from e
        except json.JSONDecodeError as e:
            raise StorageFault(f"Corrupt data in {self.slot_file}: {e}") from e

        if not isinstance(rows, list):
            raise StorageFault(f"Corrupt data in {self.slot_file}: expected a list")
        return rows

    def read_slot(self) -> Optional[list[WorkRecord]]:
        """Return stored records without seeding.

        Returns:
            Records, or None if nothing was ever stored

        Raises:
            StorageFault: If the slot or any record in it is corrupt
        """
        rows = self._read_slot()
        if rows is None:
            return None
        try:
            return [WorkRecord.from_dict(row) for row in rows]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise StorageFault(f"Corrupt record in {self.slot_file}: {e!r}") from e

    def list_records(self) -> list[WorkRecord]:
        """Load all records, seeding sample data on first use."""
        records = self.read_slot()
        if records is None:
            records = seed_records()
            self._write_slot([r.to_dict() for r in records])
            logger.info(f"Seeded {len(records)} sample records into {self.slot_file}")
        return records

    def save(self, record: WorkRecord) -> WorkRecord:
        """Save or update a record.

        Args:
            record: Record to save

        Returns:
            Stored record with timestamps applied
        """
        records = self.list_records()
        now = utc_now()

        for i, existing in enumerate(records):
            if existing.id == record.id:
                stored = replace(record, updated_at=now)
                records[i] = stored
                break
        else:
            stored = replace(record, created_at=now, updated_at=now)
            records.append(stored)

        self._write_slot([r.to_dict() for r in records])
        logger.debug(f"Saved record {stored.id} ({stored.developer_name}, {stored.date})")
        return stored

    def delete(self, record_id: str) -> None:
        """Delete a record by ID. Unknown ids are a no-op.

        Args:
            record_id: ID of record to delete
        """
        records = self.list_records()
        remaining = [r for r in records if r.id != record_id]
        self._write_slot([r.to_dict() for r in remaining])
        if len(remaining) != len(records):
            logger.debug(f"Deleted record {record_id}")

    def delete_by_owner(self, developer_name: str) -> int:
        """Delete every record of a developer.

        Args:
            developer_name: Owner whose records are removed

        Returns:
            Number of records removed
        """
        records = self.list_records()
        remaining = [r for r in records if r.developer_name != developer_name]
        self._write_slot([r.to_dict() for r in remaining])
        removed = len(records) - len(remaining)
        logger.info(f"Deleted {removed} records owned by {developer_name}")
        return removed
