"""
Road Roughness Mapping
----------------------
Fuses location fixes with vertical acceleration into geotagged roughness
estimates and folds them into a deduplicated surface-quality map.
"""

# Import main functionality for easier access
from .core.ride_recorder import RideRecorder, RecorderState
from .config import Config
from .data_storage import DataStorage
from .analysis.proximity_index import ProximityIndex

__version__ = "1.0.0"
