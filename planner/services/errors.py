"""
Planning Errors

Every error carries one human-readable message that can be shown as-is.
"""

from typing import List, Optional


class PlanningError(Exception):
    """Base class for planning grid and sync failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GridAssemblyError(PlanningError):
    """The record store could not supply the data needed to build a grid"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class PlanningEndpointUnavailable(PlanningError):
    """The store has no unified planning endpoint; assemble from per-entity calls"""


class CommitValidationError(PlanningError):
    """One or more availability edits are outside the allowed domain"""

    def __init__(self, invalid_dates: List[str], min_value: int = 1, max_value: int = 12):
        self.invalid_dates = invalid_dates
        super().__init__(
            f"Invalid availability values. Availability must be a whole number between "
            f"{min_value} and {max_value}. Invalid dates: {', '.join(invalid_dates)}"
        )


class PersistenceError(PlanningError):
    """A create/update call against the record store failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SyncNotAllowed(PlanningError):
    """A row is not eligible for Channex sync"""

    def __init__(self, message: str, reason_code: str):
        super().__init__(message)
        self.reason_code = reason_code


class ChannelSyncError(PlanningError):
    """Channex rejected the ranges or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class SessionNotFound(PlanningError):
    """No editing session with this id"""


class PendingEditsError(PlanningError):
    """The session has unsaved edits that the requested action would orphan"""
