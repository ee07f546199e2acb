import math
import threading
import logging
from typing import List

import numpy as np

from ..config import Config
from ..core.data_structures import RoughnessMapEntry
from ..data_storage import ROUGHNESS_MAP

logger = logging.getLogger("RoadRough")

EARTH_RADIUS_M = 6371000.0


def distance(lat1, lon1, lat2, lon2, earth_radius=EARTH_RADIUS_M):
    """Great-circle (haversine) distance in meters between two lat/lon points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * earth_radius * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distances_from(lat, lon, lats, lons, earth_radius=EARTH_RADIUS_M):
    """Vectorized haversine from one point to arrays of points."""
    lats = np.asarray(lats, dtype=np.float64)
    lons = np.asarray(lons, dtype=np.float64)
    phi1 = math.radians(lat)
    phi2 = np.radians(lats)
    d_phi = np.radians(lats - lat)
    d_lambda = np.radians(lons - lon)
    a = np.sin(d_phi / 2) ** 2 + math.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    # Rounding can push a slightly past 1 for antipodal points
    a = np.clip(a, 0.0, 1.0)
    return 2 * earth_radius * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def geo_cell_id(lat, lon, precision=4):
    return f"{lat:.{precision}f}_{lon:.{precision}f}"


class ProximityIndex:
    """Deduplicated, continuously updated roughness map.

    Entries live in the storage's ``roughness_map`` collection, or in memory
    when no storage is given. Both ``merge`` and ``query`` scan every entry;
    a grid hash or R-tree could replace the scan behind the same methods.
    """

    def __init__(self, config=None, storage=None):
        self.config = config or Config()
        self.storage = storage
        self.radius = getattr(self.config, 'PROXIMITY_RADIUS', 10)
        self.history_radius = getattr(self.config, 'HIST_RADIUS', 150)
        self.precision = getattr(self.config, 'GEO_ID_PRECISION', 4)
        self.earth_radius = getattr(self.config, 'EARTH_RADIUS_M', EARTH_RADIUS_M)

        # Serializes read-then-write so two merges never lose an update
        self._lock = threading.RLock()
        self._memory = {}

    def __len__(self):
        return len(self.entries())

    def entries(self) -> List[RoughnessMapEntry]:
        with self._lock:
            if self.storage is None:
                return list(self._memory.values())
            return [RoughnessMapEntry.from_record(r) for r in self.storage.get_all(ROUGHNESS_MAP)]

    def _save(self, entry):
        if self.storage is None:
            self._memory[entry.geo_cell_id] = entry
        else:
            self.storage.put(ROUGHNESS_MAP, entry.to_record())

    def _within(self, entries, lat, lon, radius):
        """Indices of ``entries`` whose centroid lies within ``radius`` meters."""
        if not entries:
            return np.empty(0, dtype=np.intp)
        lats = [e.latitude for e in entries]
        lons = [e.longitude for e in entries]
        dists = distances_from(lat, lon, lats, lons, self.earth_radius)
        return np.flatnonzero(dists <= radius)

    def merge(self, point) -> RoughnessMapEntry:
        """Fold one observation into the map and return the entry it landed in.

        A hit within the proximity radius is overwritten with the new
        coordinates, score and timestamp (latest wins, no blending). A miss
        creates a new entry keyed by the rounded coordinates.
        """
        with self._lock:
            entries = self.entries()
            hits = self._within(entries, point.latitude, point.longitude, self.radius)
            if hits.size:
                key = entries[hits[0]].geo_cell_id
                logger.debug(f"Merged observation into map entry {key}")
            else:
                key = self._new_key(entries, point.latitude, point.longitude)
                logger.debug(f"Created map entry {key}")

            entry = RoughnessMapEntry(
                geo_cell_id=key,
                latitude=point.latitude,
                longitude=point.longitude,
                roughness_value=point.roughness_value,
                last_updated=point.timestamp,
            )
            self._save(entry)
            return entry

    def _new_key(self, entries, lat, lon):
        # A drifted entry or a far corner of the same grid cell can already
        # hold the rounded key; suffix it so a miss never overwrites.
        key = geo_cell_id(lat, lon, self.precision)
        taken = {e.geo_cell_id for e in entries}
        if key not in taken:
            return key
        n = 1
        while f"{key}#{n}" in taken:
            n += 1
        return f"{key}#{n}"

    def query(self, lat, lon, radius) -> List[RoughnessMapEntry]:
        """All entries within ``radius`` meters of (lat, lon). Read-only."""
        entries = self.entries()
        return [entries[i] for i in self._within(entries, lat, lon, radius)]

    def nearby(self, lat, lon) -> List[RoughnessMapEntry]:
        """Entries for the historical roughness overlay around a position."""
        return self.query(lat, lon, self.history_radius)
