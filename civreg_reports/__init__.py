"""Death registration statistical reports and CSV export service."""

__version__ = "1.0.0"
