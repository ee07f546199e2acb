"""Past rides: listing and the plain-text recap of a single ride."""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from .core.data_structures import Ride, RidePoint
from .data_storage import RIDES, RIDE_POINTS

logger = logging.getLogger("RoadRough")


def format_duration(seconds):
    seconds = int(seconds or 0)
    return f"{seconds // 60}m {seconds % 60}s"


def format_timestamp(epoch_ms, fmt="%Y-%m-%d %H:%M:%S"):
    if epoch_ms is None:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000.0).strftime(fmt)


def format_ride_report(ride, points):
    """Render the recap of a ride and its data points as text"""
    lines = [
        f"Ride ID: {ride.ride_id}",
        f"Start: {format_timestamp(ride.start_time)}",
        f"End: {format_timestamp(ride.end_time)}",
        f"Duration: {format_duration(ride.duration_seconds)}",
        f"Points: {ride.total_points}",
        "",
        "— Data Points —",
    ]
    for point in points:
        lines.append(
            f"{format_timestamp(point.timestamp, '%H:%M:%S')} | "
            f"Lat {point.latitude:.5f}, Lon {point.longitude:.5f} | "
            f"Rough {point.roughness_value:.3f}"
        )
    return "\n".join(lines) + "\n"


class RideHistory:
    def __init__(self, storage):
        self.storage = storage

    def list_rides(self) -> List[Ride]:
        """All stored rides, newest first."""
        rides = [Ride.from_record(r) for r in self.storage.get_all(RIDES)]
        rides.sort(key=lambda ride: ride.start_time, reverse=True)
        return rides

    def get_ride(self, ride_id) -> Optional[Ride]:
        record = self.storage.get(RIDES, ride_id)
        return Ride.from_record(record) if record is not None else None

    def ride_points(self, ride_id) -> List[RidePoint]:
        return [RidePoint.from_record(r) for r in self.storage.get_by_foreign_key(RIDE_POINTS, ride_id)]

    def ride_details(self, ride_id) -> Optional[Tuple[Ride, List[RidePoint]]]:
        """The ride and its points in creation order, or None if there is nothing to show."""
        ride = self.get_ride(ride_id)
        if ride is None:
            logger.debug(f"No ride stored with id {ride_id}")
            return None
        points = self.ride_points(ride_id)
        if not points:
            return None
        return ride, points
