"""Base class for export functionality."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from work_log.core.models import WorkRecord


class Exporter(ABC):
    """Base class for all exporters."""

    def __init__(self, output_path: Path):
        """Initialize exporter.

        Args:
            output_path: Path where exported data will be written
        """
        self.output_path = Path(output_path)

    @abstractmethod
    def export_records(self, records: list[WorkRecord], **kwargs: Any) -> None:
        """Export records to the output format.

        Args:
            records: Records to export, already filtered and ordered
            **kwargs: Format-specific options
        """
        pass

    @abstractmethod
    def get_file_extension(self) -> str:
        """Get the file extension for this format, including the dot."""
        pass

    def ensure_output_path(self) -> None:
        """Ensure the output path's parent directory exists."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
