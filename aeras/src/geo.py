"""
Distance and reward policy for drop verification.

A drop is scored by how close the reported drop coordinate is to the
destination block's catalog coordinate. Coordinates are `(latitude,
longitude)` pairs in degrees (WGS84).
"""

from math import atan2, cos, floor, radians, sin, sqrt
from typing import Tuple

from aeras.src.constants import (
    EARTH_RADIUS,
    MAX_POINTS,
    MIN_PARTIAL_POINTS,
    PARTIAL_DISTANCE,
    REDUCED_POINTS,
    REVIEW_DISTANCE,
)

Coordinate = Tuple[float, float]


def distanceMeters(a: Coordinate, b: Coordinate) -> float:
    """
    Compute the great-circle distance between two coordinates.

    Uses the haversine formula on a spherical earth of radius `EARTH_RADIUS`.

    Args:
        a (Coordinate): First `(latitude, longitude)` pair.
        b (Coordinate): Second `(latitude, longitude)` pair.

    Returns:
        float: Distance in meters.

    Example:
        >>> distanceMeters((22.4725, 91.9845), (22.4725, 91.9845))
        0.0
    """
    latitude1, longitude1 = a
    latitude2, longitude2 = b
    phi1 = radians(latitude1)
    phi2 = radians(latitude2)
    deltaPhi = radians(latitude2 - latitude1)
    deltaLambda = radians(longitude2 - longitude1)

    h = sin(deltaPhi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(deltaLambda / 2) ** 2
    return EARTH_RADIUS * 2 * atan2(sqrt(h), sqrt(1 - h))


def scoreForDistance(distance: float) -> int:
    """
    Map a drop distance to a reward in [0, MAX_POINTS].

    Bands (upper bounds inclusive):
        - `d <= 0`        -> 10
        - `0 < d <= 50`   -> max(10 - floor(d / 10), 8)
        - `50 < d <= 100` -> 5
        - `d > 100`       -> 0 (the ride also goes to review)

    Args:
        distance (float): Distance in meters between drop and destination.

    Returns:
        int: Points to award.
    """
    if distance <= 0:
        return MAX_POINTS
    if distance <= PARTIAL_DISTANCE:
        return max(MAX_POINTS - floor(distance / 10), MIN_PARTIAL_POINTS)
    if distance <= REVIEW_DISTANCE:
        return REDUCED_POINTS
    return 0


def needsReview(distance: float) -> bool:
    """Whether a drop at `distance` meters must be parked for admin review."""
    return distance > REVIEW_DISTANCE
