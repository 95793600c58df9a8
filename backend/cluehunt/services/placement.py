"""Non-overlapping placement search for new clue sets.

Nothing here touches the database: callers pass in the active clue sets of a
game and get back a center for the new one, or an exhausted result.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, TypeVar

from cluehunt.utils.geo import (
    Point,
    circles_overlap,
    destination_point,
    haversine_distance_km,
    initial_bearing,
)

# Relocated centers are placed exactly tangent; this absorbs rounding so they
# are not reported as overlapping again.
TANGENCY_TOLERANCE_KM = 1e-6
DEFAULT_BEARINGS = (0.0, 120.0, 240.0)


class Circle(Protocol):
    radius_km: float

    @property
    def center(self) -> Point: ...


C = TypeVar("C", bound=Circle)


@dataclass
class Placement:
    """Outcome of a placement search.

    ``attempts`` counts relocations performed. ``anchor`` is the clue set the
    final candidate was moved away from (None when no relocation happened).
    """
    center: Optional[Point]
    attempts: int
    anchor: Optional[Circle] = None

    @property
    def exhausted(self) -> bool:
        return self.center is None

    @property
    def relocated(self) -> bool:
        return self.center is not None and self.attempts > 0


def overlapping_regions(
    center: Point,
    radius_km: float,
    regions: Sequence[C],
    tolerance_km: float = TANGENCY_TOLERANCE_KM,
) -> list[C]:
    """Regions overlapping a candidate circle, nearest first.

    Equal distances keep the input order, so earlier-created regions win ties.
    """
    hits = []
    for region in regions:
        if circles_overlap(center, radius_km, region.center, region.radius_km, tolerance_km):
            hits.append((haversine_distance_km(center, region.center), region))
    hits.sort(key=lambda item: item[0])
    return [region for _, region in hits]


def nearest_region(point: Point, regions: Sequence[C]) -> Optional[C]:
    """Closest region to a point by center distance; first one wins ties."""
    if not regions:
        return None
    return min(regions, key=lambda region: haversine_distance_km(point, region.center))


def relocate(
    candidate: Point,
    radius_km: float,
    region: Circle,
    attempt: int,
    bearings: Sequence[float] = DEFAULT_BEARINGS,
) -> Point:
    """Push a candidate center out of ``region`` until the two circles are tangent.

    The move follows the great circle from the region's center through the
    candidate. Coincident centers have no direction, so the bearing is taken
    from ``bearings`` by attempt number.
    """
    origin = region.center
    if haversine_distance_km(origin, candidate) == 0.0:
        schedule = bearings or DEFAULT_BEARINGS
        bearing = schedule[attempt % len(schedule)]
    else:
        bearing = initial_bearing(origin, candidate)
    return destination_point(origin, bearing, radius_km + region.radius_km)


def find_placement(
    point: Point,
    radius_km: float,
    regions: Sequence[Circle],
    *,
    max_attempts: int = 3,
    bearings: Sequence[float] = DEFAULT_BEARINGS,
    tolerance_km: float = TANGENCY_TOLERANCE_KM,
) -> Placement:
    """Find a center near ``point`` whose circle overlaps none of ``regions``.

    The point itself is tried first. Each overlap moves the candidate away from
    the nearest overlapping region, at most ``max_attempts`` times. A free
    candidate that has drifted so far that its circle no longer covers
    ``point`` ends the search as exhausted.
    """
    candidate = point
    anchor = None
    for attempt in range(max_attempts + 1):
        overlaps = overlapping_regions(candidate, radius_km, regions, tolerance_km)
        if not overlaps:
            if haversine_distance_km(point, candidate) > radius_km:
                break
            return Placement(center=candidate, attempts=attempt, anchor=anchor)
        if attempt == max_attempts:
            break
        anchor = overlaps[0]
        candidate = relocate(candidate, radius_km, anchor, attempt, bearings)

    return Placement(center=None, attempts=attempt, anchor=anchor)
