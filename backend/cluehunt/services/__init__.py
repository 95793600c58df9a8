"""Services exports."""
from cluehunt.services.errors import (
    AssignmentError,
    ClueGenerationError,
    CoordinateValidationError,
    ParticipantNotFoundError,
    RegionNotFoundError,
)
from cluehunt.services.region_assigner import Assignment, RegionAssigner
from cluehunt.services.region_store import RegionStore, ParticipantStore, SqlAlchemyStore

__all__ = [
    "AssignmentError",
    "ClueGenerationError",
    "CoordinateValidationError",
    "ParticipantNotFoundError",
    "RegionNotFoundError",
    "Assignment",
    "RegionAssigner",
    "RegionStore",
    "ParticipantStore",
    "SqlAlchemyStore",
]
