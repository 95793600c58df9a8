"""Pydantic schemas for clue sets, assignment and clues."""
from datetime import datetime
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, Field


class Coordinate(BaseModel):
    """Latitude/longitude in WGS84 degrees."""
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)


class CenterPoint(BaseModel):
    lat: float
    lng: float


# --- Clue Set Schemas ---
class ClueSetResponse(BaseModel):
    """Clue set as shown to players."""
    id: UUID
    name: str
    description: Optional[str] = None
    main_subject: Optional[str] = None
    center: CenterPoint
    radius_km: float
    phase: str
    city: Optional[str] = None

    @classmethod
    def from_model(cls, clue_set) -> "ClueSetResponse":
        return cls(
            id=clue_set.id,
            name=clue_set.name,
            description=clue_set.description,
            main_subject=clue_set.main_subject,
            center=CenterPoint(lat=clue_set.center_latitude, lng=clue_set.center_longitude),
            radius_km=clue_set.radius_km,
            phase=clue_set.phase,
            city=clue_set.city,
        )


class ClueSetListItem(ClueSetResponse):
    """Clue set with its current participants."""
    participant_count: int = 0
    participants: List[str] = Field(default_factory=list)


class ClueSetListResponse(BaseModel):
    result: Literal["listed"] = "listed"
    clue_sets: List[ClueSetListItem]


class AssignmentResponse(BaseModel):
    """Result of placing the caller in a clue set."""
    result: Literal["created", "existing_clue_set", "fallback"]
    clue_set: ClueSetResponse
    distance_km: float
    relocation_attempts: int = 0
    content_status: Optional[Literal["ready", "generated", "unavailable"]] = None
    message: Optional[str] = None


class PreviewResponse(BaseModel):
    """Which clue set a coordinate would land in, without writing anything."""
    result: Literal["existing_clue_set", "would_create_new"]
    clue_set: Optional[ClueSetResponse] = None
    distance_km: Optional[float] = None
    location: Optional[Coordinate] = None
    message: Optional[str] = None


# --- Hunt / Clue Schemas ---
class ClueResponse(BaseModel):
    id: UUID
    clue_number: int
    question: str
    hint: Optional[str] = None
    type: str
    ai_generated: bool = False

    class Config:
        from_attributes = True


class HuntResponse(BaseModel):
    id: UUID
    hunt_number: int
    name: str
    description: Optional[str] = None
    level_number: Optional[int] = None
    stage_number: Optional[int] = None
    created_at: datetime
    clues: List[ClueResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class HuntListResponse(BaseModel):
    clue_set: ClueSetResponse
    hunts: List[HuntResponse]


# --- Location Schemas ---
class LocationValidationResponse(BaseModel):
    is_valid_location: bool
    message: str
    game_id: UUID
    location: Coordinate
