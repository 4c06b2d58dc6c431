"""Proximity validation against a token's geofence.

Distances use the haversine formula on a spherical earth. The accuracy reported
with a fix never widens or narrows the radius.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..core.constants import EARTH_RADIUS_M
from .model import Geofence, GeoPoint


@dataclass(frozen=True)
class ProximityCheck:
    within: bool
    distance_m: Optional[float] = None


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points, in meters."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    delta_lat = math.radians(b.lat - a.lat)
    delta_lng = math.radians(b.lng - a.lng)

    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    # Rounding can push h marginally outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def within_geofence(geofence: Optional[Geofence], location: Optional[GeoPoint]) -> ProximityCheck:
    """Check a reported location against an optional geofence.

    No geofence means proximity is not required. A geofence with no reported
    location cannot be satisfied.
    """
    if geofence is None:
        return ProximityCheck(within=True)
    if location is None:
        return ProximityCheck(within=False)

    distance = distance_meters(geofence.center, location)
    return ProximityCheck(within=distance <= geofence.radius_m, distance_m=distance)
