"""Core functionality for the roughness recorder."""

from .data_structures import LocationFix, LocationError, MotionSample, RidePoint, RoughnessMapEntry, Ride, RideStatus
from .sensor_fusion import SensorFusionLoop
from .ride_recorder import RideRecorder, RecorderState
