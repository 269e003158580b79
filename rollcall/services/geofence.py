# rollcall/services/geofence.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from haversine import haversine, Unit


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )


@dataclass(frozen=True)
class Geofence:
    latitude: float
    longitude: float
    radius_meters: float

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    def is_valid(self, max_radius_meters: Optional[float] = None) -> bool:
        if not self.center.is_valid():
            return False
        if not math.isfinite(self.radius_meters) or self.radius_meters <= 0:
            return False
        return max_radius_meters is None or self.radius_meters <= max_radius_meters


def distance_meters(fence: Geofence, point: GeoPoint) -> float:
    """Great-circle distance between the fence center and the point."""
    return haversine(
        (fence.latitude, fence.longitude),
        (point.latitude, point.longitude),
        unit=Unit.METERS,
    )


def is_within_fence(fence: Optional[Geofence], point: Optional[GeoPoint]) -> bool:
    """True when no fence applies, or the point lies inside it (boundary included).

    A missing point against a real fence is False here; the caller decides
    whether that means "location required".
    """
    if fence is None:
        return True
    if point is None or not point.is_valid():
        return False
    return distance_meters(fence, point) <= fence.radius_meters
