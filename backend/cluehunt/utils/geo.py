"""Spherical geometry helpers for clue set placement.

Points are ``(lat, lng)`` tuples in degrees, distances are kilometers.
"""
import math
from typing import NamedTuple

EARTH_RADIUS_KM = 6371.0

Point = tuple[float, float]


class BoundingBox(NamedTuple):
    """Axis-aligned lat/lng box enclosing a circle."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, point: Point) -> bool:
        lat, lng = point
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Check that a coordinate is finite and within WGS84 ranges."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def haversine_distance_km(p1: Point, p2: Point) -> float:
    """Great-circle distance between two points using the Haversine formula."""
    lat1, lng1 = map(math.radians, p1)
    lat2, lng2 = map(math.radians, p2)
    d_lat = lat2 - lat1
    d_lng = lng2 - lng1

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def bounding_box(center: Point, radius_km: float) -> BoundingBox:
    """Compute the lat/lng box enclosing a circle on the sphere.

    The longitude half-width uses the exact extent of a spherical cap,
    ``asin(sin(d) / cos(lat))``, so the box never clips the circle. Boxes that
    reach a pole or cross the antimeridian span the full longitude range.
    """
    lat, lng = center
    angular = radius_km / EARTH_RADIUS_KM
    lat_offset = math.degrees(angular)

    min_lat = lat - lat_offset
    max_lat = lat + lat_offset
    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0)

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    lng_offset = math.degrees(math.asin(ratio))
    min_lng = lng - lng_offset
    max_lng = lng + lng_offset
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


def point_in_circle(point: Point, center: Point, radius_km: float) -> bool:
    """A point is inside a circle when its distance to the center is <= radius."""
    return haversine_distance_km(point, center) <= radius_km


def circles_overlap(
    c1: Point,
    r1: float,
    c2: Point,
    r2: float,
    tolerance_km: float = 0.0,
) -> bool:
    """Two circles overlap when their centers are closer than the sum of radii.

    ``tolerance_km`` lets circles that are tangent up to floating-point error
    count as non-overlapping.
    """
    return haversine_distance_km(c1, c2) < (r1 + r2) - tolerance_km


def initial_bearing(origin: Point, target: Point) -> float:
    """Initial great-circle bearing from origin to target, degrees clockwise from north."""
    lat1, lng1 = map(math.radians, origin)
    lat2, lng2 = map(math.radians, target)
    d_lng = lng2 - lng1

    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def destination_point(origin: Point, bearing_deg: float, distance_km: float) -> Point:
    """Point reached by travelling ``distance_km`` from origin along a great circle."""
    lat1, lng1 = map(math.radians, origin)
    theta = math.radians(bearing_deg)
    delta = distance_km / EARTH_RADIUS_KM

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lng2 = lng1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )
    # normalise to [-180, 180)
    lng = (math.degrees(lng2) + 540.0) % 360.0 - 180.0
    return math.degrees(lat2), lng
