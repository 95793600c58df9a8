"""Clue set assignment.

Maps a participant's coordinate in a game to a clue set, creating a new,
non-overlapping clue set when no existing one contains the coordinate.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from cluehunt.config import get_settings
from cluehunt.models.clue_set import ClueSet
from cluehunt.services.clue_content import ContentProvider
from cluehunt.services.errors import ClueGenerationError, CoordinateValidationError
from cluehunt.services.placement import TANGENCY_TOLERANCE_KM, find_placement, nearest_region
from cluehunt.services.region_store import (
    LockRegistry,
    ParticipantStore,
    RegionMetadata,
    RegionStore,
    content_locks,
)
from cluehunt.utils.audit import log_audit_event
from cluehunt.utils.geo import Point, bounding_box, haversine_distance_km, is_valid_coordinate

logger = logging.getLogger("cluehunt.assigner")

CONTENT_READY = "ready"
CONTENT_GENERATED = "generated"
CONTENT_UNAVAILABLE = "unavailable"

# (level, stage) pairs that send a participant to a clue set other than the local one
DIFFERENT_REGION_STAGES = {(3, 3), (3, 4), (6, 3), (6, 4)}


@dataclass
class Assignment:
    """Outcome of ``RegionAssigner.assign``.

    ``fallback`` marks the lossy path where no overlap-free placement was found
    and the participant joined the nearest existing clue set instead.
    """
    region: ClueSet
    created: bool = False
    fallback: bool = False
    relocation_attempts: int = 0
    distance_km: float = 0.0
    content_status: Optional[str] = None

    @property
    def result(self) -> str:
        if self.created:
            return "created"
        if self.fallback:
            return "fallback"
        return "existing_clue_set"


def coerce_point(coordinate) -> Point:
    """Validate a coordinate given as ``(lat, lng)`` or an object with ``lat``/``lng``."""
    if hasattr(coordinate, "lat") and hasattr(coordinate, "lng"):
        values = (coordinate.lat, coordinate.lng)
    elif isinstance(coordinate, (str, bytes)):
        raise CoordinateValidationError("Coordinate must be a (lat, lng) pair of numbers")
    else:
        values = coordinate
    try:
        lat, lng = (float(v) for v in values)
    except (TypeError, ValueError) as e:
        raise CoordinateValidationError("Coordinate must be a (lat, lng) pair of numbers") from e

    if not is_valid_coordinate(lat, lng):
        raise CoordinateValidationError(
            f"Invalid coordinate ({lat}, {lng}): latitude must be within [-90, 90] "
            f"and longitude within [-180, 180]"
        )
    return lat, lng


def requires_different_region(level: Optional[int], stage: Optional[int]) -> bool:
    return (level, stage) in DIFFERENT_REGION_STAGES


def default_region_metadata(
    center: Point,
    phase: Optional[str] = None,
    level: Optional[int] = None,
    stage: Optional[int] = None,
    city: Optional[str] = None,
) -> RegionMetadata:
    lat, lng = center
    return RegionMetadata(
        name=f"ClueSet-{round(lat * 1000)}-{round(lng * 1000)}",
        description=f"Auto-generated clue set for location {lat:.4f}, {lng:.4f}",
        phase=phase or "PHASE_1",
        level_number=level,
        stage_number=stage,
        city=city,
    )


class RegionAssigner:
    """Find-or-create clue set assignment for participants of a game."""

    def __init__(
        self,
        regions: RegionStore,
        participants: ParticipantStore,
        content: Optional[ContentProvider] = None,
        *,
        default_radius_km: Optional[float] = None,
        phase_radius_km: Optional[dict[str, float]] = None,
        max_attempts: Optional[int] = None,
        bearings: Optional[Sequence[float]] = None,
        locks: LockRegistry = content_locks,
    ):
        settings = get_settings()
        self.regions = regions
        self.participants = participants
        self.content = content
        self.default_radius_km = default_radius_km or settings.DEFAULT_RADIUS_KM
        self.phase_radius_km = (
            settings.PHASE_RADIUS_KM if phase_radius_km is None else phase_radius_km
        )
        self.max_attempts = settings.RELOCATION_ATTEMPTS if max_attempts is None else max_attempts
        self.bearings = tuple(bearings or settings.RELOCATION_BEARINGS)
        self.locks = locks

    def resolve_radius(self, phase: Optional[str] = None, radius_km: Optional[float] = None) -> float:
        """Radius for a new clue set: explicit value, then phase override, then default."""
        if radius_km is not None:
            if radius_km <= 0:
                raise ValueError("radius_km must be positive")
            return radius_km
        if phase and phase in self.phase_radius_km:
            return self.phase_radius_km[phase]
        return self.default_radius_km

    async def find_containing(self, game_id, coordinate) -> Optional[ClueSet]:
        """Clue set containing the coordinate, or None."""
        return await self._find_containing(game_id, coerce_point(coordinate))

    async def _find_containing(self, game_id, point: Point) -> Optional[ClueSet]:
        best = None
        best_distance = None
        for region in await self.regions.find_by_bounding_box(game_id, point):
            distance = haversine_distance_km(point, region.center)
            if distance > region.radius_km:
                continue
            if best is None or distance < best_distance:
                best, best_distance = region, distance
        return best

    async def find_different_region(
        self,
        game_id,
        coordinate,
        min_distance_km: Optional[float] = None,
    ) -> Optional[ClueSet]:
        """First active clue set whose center is farther than ``min_distance_km``."""
        point = coerce_point(coordinate)
        if min_distance_km is None:
            min_distance_km = get_settings().DIFFERENT_REGION_MIN_DISTANCE_KM
        for region in await self.regions.find_all_active(game_id):
            if haversine_distance_km(point, region.center) > min_distance_km:
                return region
        return None

    async def assign(
        self,
        game_id,
        participant_id,
        coordinate,
        *,
        phase: Optional[str] = None,
        level: Optional[int] = None,
        stage: Optional[int] = None,
        city: Optional[str] = None,
        radius_km: Optional[float] = None,
        different_region: bool = False,
    ) -> Assignment:
        """Assign a participant to the clue set for their coordinate.

        The containment search runs first without locking. Creation happens
        under ``RegionStore.exclusive`` and repeats the search there, so a
        request that lost the race joins the winner's clue set. The clue set
        insert and the participant update commit together.
        """
        point = coerce_point(coordinate)
        radius = self.resolve_radius(phase, radius_km)

        region = None
        if different_region:
            region = await self.find_different_region(game_id, point)
        if region is None:
            region = await self._find_containing(game_id, point)

        if region is not None:
            assignment = Assignment(region=region)
            async with self.regions.atomic():
                await self.participants.update_region_assignment(participant_id, region.id, point)
        else:
            async with self.regions.exclusive(game_id):
                region = await self._find_containing(game_id, point)
                if region is not None:
                    assignment = Assignment(region=region)
                else:
                    metadata = default_region_metadata(point, phase, level, stage, city)
                    assignment = await self._place(game_id, point, radius, metadata)
                await self.participants.update_region_assignment(
                    participant_id, assignment.region.id, point
                )

        region = assignment.region
        assignment.distance_km = haversine_distance_km(point, region.center)

        if assignment.created:
            log_audit_event(
                "clue_set.created",
                game_id=game_id,
                participant_id=participant_id,
                details={
                    "clue_set_id": region.id,
                    "center": region.center,
                    "radius_km": region.radius_km,
                    "relocation_attempts": assignment.relocation_attempts,
                },
            )
        log_audit_event(
            "participant.assigned",
            game_id=game_id,
            participant_id=participant_id,
            details={
                "clue_set_id": region.id,
                "result": assignment.result,
                "location": point,
            },
        )

        assignment.content_status = await self.ensure_content(region, level=level, stage=stage)
        return assignment

    async def _place(
        self,
        game_id,
        point: Point,
        radius_km: float,
        metadata: RegionMetadata,
    ) -> Assignment:
        existing = await self.regions.find_all_active(game_id)
        placement = find_placement(
            point,
            radius_km,
            existing,
            max_attempts=self.max_attempts,
            bearings=self.bearings,
            tolerance_km=TANGENCY_TOLERANCE_KM,
        )

        if placement.exhausted:
            # Lossy on purpose: dense areas reuse a clue set instead of piling up new ones
            region = nearest_region(point, existing)
            logger.warning(
                f"No free placement near {point} in game {game_id} after "
                f"{placement.attempts} relocations; using nearest clue set {region.id}"
            )
            return Assignment(region=region, fallback=True, relocation_attempts=placement.attempts)

        center = placement.center
        if placement.relocated:
            lat, lng = center
            metadata.name = f"ClueSet-{round(lat * 1000)}-{round(lng * 1000)}"
            metadata.description = f"Auto-generated clue set for location {lat:.4f}, {lng:.4f}"

        region = await self.regions.create(
            game_id, center, radius_km, bounding_box(center, radius_km), metadata
        )
        logger.info(
            f"Created clue set {region.id} in game {game_id} at {center} "
            f"(radius {radius_km} km, {placement.attempts} relocations)"
        )
        return Assignment(region=region, created=True, relocation_attempts=placement.attempts)

    async def ensure_content(
        self,
        region: ClueSet,
        *,
        level: Optional[int] = None,
        stage: Optional[int] = None,
    ) -> Optional[str]:
        """Generate clues for a clue set that has none, at most once per clue set.

        Runs after the assignment has committed, so failures never undo it.
        They are logged and reported as ``unavailable``; the clue set stays
        without content so a later call can retry.
        """
        if self.content is None:
            return None

        async with self.locks.get(region.id):
            try:
                if await self.content.has_content(region):
                    return CONTENT_READY
                await self.content.generate(region, level=level, stage=stage)
            except (ClueGenerationError, SQLAlchemyError) as e:
                logger.warning(f"Clue generation failed for clue set {region.id}: {e}")
                return CONTENT_UNAVAILABLE
        return CONTENT_GENERATED
