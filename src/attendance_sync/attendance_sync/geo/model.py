from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..common.validators import require_latitude, require_longitude
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class GeoPoint:
    """A reported location fix. Accuracy (meters) is informational only."""

    lat: float
    lng: float
    accuracy: Optional[float] = None

    @classmethod
    def create(cls, lat, lng, accuracy=None) -> "GeoPoint":
        acc = None
        if accuracy is not None:
            try:
                acc = float(accuracy)
            except (TypeError, ValueError):
                raise ValidationError("accuracy must be a number")
        return cls(lat=require_latitude(lat), lng=require_longitude(lng), accuracy=acc)


@dataclass(frozen=True)
class Geofence:
    """Circular region a reported location must fall within."""

    center_lat: float
    center_lng: float
    radius_m: float

    @classmethod
    def create(cls, center_lat, center_lng, radius_m) -> "Geofence":
        try:
            radius = float(radius_m)
        except (TypeError, ValueError):
            raise ValidationError("radius_m must be a number")
        if radius <= 0:
            raise ValidationError("radius_m must be positive")
        return cls(
            center_lat=require_latitude(center_lat),
            center_lng=require_longitude(center_lng),
            radius_m=radius,
        )

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(lat=self.center_lat, lng=self.center_lng)
