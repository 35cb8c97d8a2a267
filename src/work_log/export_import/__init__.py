"""Export functionality for Work Log."""

from work_log.export_import.base import Exporter
from work_log.export_import.csv_format import CSVExporter

__all__ = ["Exporter", "CSVExporter"]
