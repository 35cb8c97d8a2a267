"""Command-line interface for Work Log."""
