"""Work Log - daily per-project work hour logging."""

__version__ = "0.1.0"
