"""
Exception hierarchy for the tracker.

Service and store code raise these; the HTTP layer maps them to status
codes and the API client maps status codes back onto them.
"""
from typing import Optional


class TrackerError(Exception):
    """Base exception for all tracker errors"""
    pass


class ValidationError(TrackerError):
    """Malformed or out-of-range input"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class NotFoundError(TrackerError):
    """Requested record does not exist"""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class StorageError(TrackerError, OSError):
    """Record store could not be written"""
    pass


class ApiError(TrackerError):
    """Unexpected response or transport failure talking to the API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
