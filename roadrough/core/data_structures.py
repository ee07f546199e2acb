"""
Data structures shared by the fusion pipeline.
This module provides the sensor readings consumed by the recorder and the
records it produces and persists.
"""

import uuid
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Optional

from ..errors import RoadRoughError, PermissionDenied, SensorTimeout, SensorUnavailable

# Location error codes delivered by a location source
PERMISSION_DENIED = "permission-denied"
UNAVAILABLE = "unavailable"
TIMEOUT = "timeout"
LOCATION_ERROR_CODES = (PERMISSION_DENIED, UNAVAILABLE, TIMEOUT)

LOCATION_ERROR_MESSAGES = {
    PERMISSION_DENIED: "Permission denied",
    UNAVAILABLE: "Unavailable",
    TIMEOUT: "Timed out",
}


@dataclass(frozen=True)
class LocationFix:
    """One location reading. ``timestamp`` is epoch milliseconds."""
    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None
    altitude: Optional[float] = None


@dataclass(frozen=True)
class LocationError:
    code: str
    message: str = ""

    @property
    def description(self) -> str:
        return self.message or LOCATION_ERROR_MESSAGES.get(self.code, "GPS error")

    def as_exception(self) -> RoadRoughError:
        if self.code == PERMISSION_DENIED:
            return PermissionDenied(self.description)
        if self.code == TIMEOUT:
            return SensorTimeout(self.description)
        return SensorUnavailable(self.description)


@dataclass(frozen=True)
class MotionSample:
    """Vertical acceleration including gravity, or None when the device did not report it."""
    vertical_acceleration: Optional[float]


@dataclass(frozen=True)
class RidePoint:
    """One fused observation. Immutable once created."""
    id: str
    ride_id: int
    timestamp: int
    latitude: float
    longitude: float
    roughness_value: float
    horizontal_accuracy: Optional[float] = None
    altitude: Optional[float] = None

    @classmethod
    def from_fix(cls, ride_id: int, fix: LocationFix, roughness: float) -> "RidePoint":
        return cls(
            id=uuid.uuid4().hex,
            ride_id=ride_id,
            timestamp=fix.timestamp,
            latitude=fix.latitude,
            longitude=fix.longitude,
            roughness_value=roughness,
            horizontal_accuracy=fix.accuracy,
            altitude=fix.altitude,
        )

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "RidePoint":
        return cls(**record)


@dataclass
class RoughnessMapEntry:
    """One cell of the global surface-quality map.

    ``geo_cell_id`` is the key assigned when the entry was created. It is
    opaque: later merges move the centroid but never re-key the entry.
    """
    geo_cell_id: str
    latitude: float
    longitude: float
    roughness_value: float
    last_updated: int

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "RoughnessMapEntry":
        return cls(**record)


class RideStatus:
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Ride:
    ride_id: int
    start_time: int
    end_time: Optional[int] = None
    duration_seconds: int = 0
    total_points: int = 0
    status: str = RideStatus.ACTIVE

    def complete(self, end_time: int, total_points: int) -> "Ride":
        """Return the finalized copy of this ride."""
        return replace(
            self,
            end_time=end_time,
            duration_seconds=max(0, (end_time - self.start_time) // 1000),
            total_points=total_points,
            status=RideStatus.COMPLETED,
        )

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Ride":
        return cls(**record)
