"""Errors raised by the clue set services.

Each error carries the HTTP status and payload the API should answer with.
"""
from typing import Any, Dict, Optional


class AssignmentError(Exception):
    """Raised when a participant cannot be placed in a clue set."""

    status_code = 400
    error_code = "assignment_failed"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {"error": self.error_code, "message": message}


class CoordinateValidationError(AssignmentError):
    """Latitude/longitude missing, non-finite or out of range."""

    status_code = 400
    error_code = "invalid_coordinate"


class ParticipantNotFoundError(AssignmentError):
    status_code = 404
    error_code = "participant_not_found"


class RegionNotFoundError(AssignmentError):
    status_code = 404
    error_code = "clue_set_not_found"


class ClueGenerationError(Exception):
    """Clue content could not be generated for a clue set."""
