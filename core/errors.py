"""
Load pipeline error taxonomy.

All of these are caught at the LoadOrchestrator boundary and turned into a
full reset of dependent state. None of them is fatal to the process.
"""

from typing import Optional


class ViewerError(Exception):
    """Base class for load pipeline failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ManifestFetchError(ViewerError):
    """Non-success status, transport failure or malformed manifest JSON."""


class AssetFetchError(ViewerError):
    """Non-success status for the animation or table resource."""


class TableParseError(ViewerError):
    """No usable dataset found, or no array-shaped payload recognized."""
