"""Base class shared by the record store backends."""

from abc import ABC, abstractmethod
from typing import Any

from work_log.core.models import WorkRecord


class RecordStore(ABC):
    """Persistence for work records.

    Stores are constructed explicitly and passed to whatever needs them.
    ``open()`` must be called before use (or use the store as a context
    manager) and ``close()`` releases any held resources.
    """

    def open(self) -> "RecordStore":
        """Acquire resources. Returns self for chaining."""
        return self

    def close(self) -> None:
        """Release resources. Safe to call more than once."""
        pass

    def __enter__(self) -> "RecordStore":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def list_records(self) -> list[WorkRecord]:
        """Return every stored record."""
        pass

    @abstractmethod
    def save(self, record: WorkRecord) -> WorkRecord:
        """Insert or replace a record by id.

        Returns:
            The record as stored, with timestamps set
        """
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a record by id. Unknown ids are ignored."""
        pass

    @abstractmethod
    def delete_by_owner(self, developer_name: str) -> int:
        """Delete every record owned by a developer.

        Returns:
            Number of records removed
        """
        pass
