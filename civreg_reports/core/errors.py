"""
Error taxonomy for the death report export pipeline.

Only fetch failures are raised. Missing buckets and unrecognised residence
schemas resolve to zero, and render inconsistencies are logged diagnostics.
"""

from typing import List, Optional


class ErrorClass:
    """Structured error classification for observability."""
    MISSING_BUCKET = "MISSING_BUCKET"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    FETCH_FAILURE = "FETCH_FAILURE"
    RENDER_INCONSISTENCY = "RENDER_INCONSISTENCY"
    TIMEOUT_EXCEEDED = "TIMEOUT_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"


class ReportFetchError(Exception):
    """One category payload could not be read from the registry API."""

    error_class = ErrorClass.FETCH_FAILURE

    def __init__(
        self,
        source: str,
        year: int,
        message: str,
        status_code: Optional[int] = None
    ):
        self.source = source
        self.year = year
        self.status_code = status_code
        detail = f"{source} ({year}): {message}"
        if status_code is not None:
            detail = f"{detail} [HTTP {status_code}]"
        super().__init__(detail)


class ReportExportError(Exception):
    """
    An export was aborted before anything was written.

    Wraps the first fetch failure so callers surface exactly one error.
    """

    error_class = ErrorClass.FETCH_FAILURE

    def __init__(self, year: int, categories: List[str], cause: Exception):
        self.year = year
        self.categories = categories
        self.cause = cause
        super().__init__(f"Death report export for {year} failed: {cause}")
