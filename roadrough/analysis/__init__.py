"""Signal processing and spatial aggregation."""

from .signal_filter import SignalFilter
from .roughness import RoughnessEstimator, roughness_to_color
from .proximity_index import ProximityIndex, distance, geo_cell_id
