import enum
import math
import threading
import logging
import time

from ..config import Config
from ..errors import PermissionDenied, SensorUnavailable, StorageFailure
from ..analysis.signal_filter import SignalFilter
from ..analysis.roughness import RoughnessEstimator
from ..analysis.proximity_index import ProximityIndex
from ..data_storage import RIDES, RideBuffer
from ..history import RideHistory
from .cleanup import release_subscription
from .data_structures import Ride, PERMISSION_DENIED, TIMEOUT
from .events import PresentationSink
from .sensor_fusion import SensorFusionLoop

logger = logging.getLogger("RoadRough")


class RecorderState(enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"


class RideRecorder:
    """Ride lifecycle: IDLE -> RECORDING -> FINALIZING -> IDLE.

    Owns the sensor subscriptions, the fusion loop and every in-memory
    buffer of the active ride. Only one ride is active at a time; start()
    while recording and stop() while idle are no-ops.
    """

    def __init__(self, storage, location_source, motion_source=None, config=None,
                 sink=None, proximity_index=None, clock=time.time, use_timer_thread=True):
        self.config = config or Config()
        self.storage = storage
        self.location_source = location_source
        self.motion_source = motion_source
        self.sink = sink or PresentationSink()
        self.clock = clock

        # Shared with the fusion loop so ticks, callbacks and start/stop never interleave
        self._lock = threading.RLock()

        self.signal_filter = SignalFilter(alpha=getattr(self.config, 'HPF_ALPHA', 0.8))
        self.estimator = RoughnessEstimator()
        self.proximity_index = proximity_index or ProximityIndex(self.config, storage)
        self.ride_buffer = RideBuffer()
        self.history = RideHistory(storage)
        self.fusion_loop = SensorFusionLoop(
            self.signal_filter, self.estimator, self.proximity_index, self.ride_buffer,
            config=self.config, sink=self.sink, lock=self._lock, use_thread=use_timer_thread,
        )

        self._state = RecorderState.IDLE
        self._ride = None
        self._last_ride_id = 0
        self._location_handle = None
        self._motion_handle = None
        self.motion_available = False

        # Set while start() is subscribing, so a refusal aborts the start instead of stopping
        self._starting = False
        self._start_denied = False

    @property
    def state(self):
        return self._state

    @property
    def is_recording(self):
        return self._state is RecorderState.RECORDING

    @property
    def current_ride(self):
        return self._ride

    @property
    def points(self):
        """Points recorded so far in the active ride."""
        return self.ride_buffer.points()

    def _now_ms(self):
        return int(self.clock() * 1000)

    def _next_ride_id(self):
        # Start time in ms, bumped if two rides start within the same ms
        ride_id = max(self._now_ms(), self._last_ride_id + 1)
        self._last_ride_id = ride_id
        return ride_id

    def start(self):
        """Begin a new ride. Returns its ride_id, or None if nothing was started."""
        with self._lock:
            if self._state is not RecorderState.IDLE:
                logger.warning(f"Ride {self._ride.ride_id} already in progress, ignoring start")
                return None

            ride_id = self._next_ride_id()
            self.signal_filter.reset()
            self.ride_buffer.begin(ride_id)
            self._ride = Ride(ride_id=ride_id, start_time=ride_id)
            self._state = RecorderState.RECORDING
            self.sink.status("Requesting permissions…")

            self._starting = True
            self._start_denied = False
            try:
                self._location_handle = self.location_source.subscribe(
                    self._on_fix, self._on_location_error
                )
            except (PermissionDenied, SensorUnavailable) as e:
                logger.error(f"Cannot subscribe to location stream: {e}")
                self.sink.status(str(e) or "Location not available.")
                self._reset_ride_state()
                return None
            finally:
                self._starting = False

            if self._start_denied:
                release_subscription(self.location_source, self._location_handle, "location")
                self._location_handle = None
                self._reset_ride_state()
                return None

            self._subscribe_motion()
            self.fusion_loop.arm(ride_id)

            try:
                self.storage.put(RIDES, self._ride.to_record())
            except StorageFailure as e:
                logger.error(f"Error storing ride {ride_id}: {e}")
                self.sink.status("Error saving ride.")

            logger.info(f"Ride {ride_id} started (motion sensor: {'on' if self.motion_available else 'off'})")
            self.sink.status("Recording… waiting for GPS.")
            return ride_id

    def _subscribe_motion(self):
        """Subscribe to the motion stream; any failure degrades to zero roughness."""
        if self.motion_source is None:
            self._motion_unavailable("Motion sensor not available.")
            return

        request_permission = getattr(self.motion_source, 'request_permission', None)
        granted = True
        if callable(request_permission):
            try:
                granted = bool(request_permission())
            except SensorUnavailable as e:
                self._motion_unavailable(f"Motion sensor not available: {e}")
                return
            except PermissionDenied:
                granted = False
            except Exception as e:
                logger.error(f"Error requesting motion permission: {e}", exc_info=True)
                self._motion_unavailable("Error requesting motion permission.")
                return

        if not granted:
            self._motion_unavailable("Motion permission denied.")
            return

        try:
            self._motion_handle = self.motion_source.subscribe(self._on_motion)
            self.motion_available = True
        except (PermissionDenied, SensorUnavailable) as e:
            self._motion_unavailable(f"Motion sensor not available: {e}")

    def _motion_unavailable(self, message):
        self.motion_available = False
        logger.warning(f"{message} Recording continues with zero roughness.")
        self.sink.status(message)

    def stop(self):
        """Finish the active ride. Returns the stored Ride, or None."""
        with self._lock:
            if self._state is not RecorderState.RECORDING:
                logger.debug("No ride in progress, ignoring stop")
                return None

            self._state = RecorderState.FINALIZING
            ride = self._ride

            # Detach everything before any storage work
            self.fusion_loop.cancel()
            release_subscription(self.location_source, self._location_handle, "location")
            release_subscription(self.motion_source, self._motion_handle, "motion")
            self._location_handle = None
            self._motion_handle = None

            self.sink.status("Saving ride…")
            points = self.ride_buffer.drain()
            final = ride.complete(self._now_ms(), len(points))

            saved = None
            try:
                self.storage.finalize_ride(final, points)
                saved = final
                logger.info(f"Ride {final.ride_id} saved: {final.total_points} points, "
                            f"{final.duration_seconds}s")
                self.sink.status("Ride saved!")
            except StorageFailure as e:
                # Not retried: the ride's points are lost
                logger.error(f"Error saving ride {ride.ride_id}: {e}")
                self.sink.status("Error saving ride.")
            finally:
                self._reset_ride_state()

        self._publish_ride_list()
        return saved

    def _reset_ride_state(self):
        self.fusion_loop.cancel()
        self.ride_buffer.drain()
        self.signal_filter.reset()
        self._ride = None
        self.motion_available = False
        self._state = RecorderState.IDLE

    def _publish_ride_list(self):
        try:
            rides = self.history.list_rides()
        except StorageFailure as e:
            logger.error(f"Error loading past rides: {e}")
            self.sink.status("Error loading past rides.")
            return
        self.sink.ride_list_changed(rides)

    def tick(self):
        """Run one fusion step now."""
        return self.fusion_loop.tick()

    def nearby_history(self, lat, lon):
        return self.proximity_index.nearby(lat, lon)

    # Sensor callbacks

    def _on_fix(self, fix):
        if not (math.isfinite(fix.latitude) and math.isfinite(fix.longitude)):
            logger.warning(f"Discarding fix with non-finite coordinates: {fix}")
            return
        with self._lock:
            if self._state is RecorderState.RECORDING:
                self.fusion_loop.update_fix(fix)

    def _on_motion(self, sample):
        with self._lock:
            if self._state is RecorderState.RECORDING:
                self.signal_filter.handle_motion(sample)

    def _on_location_error(self, error):
        exc = error.as_exception()
        if error.code == PERMISSION_DENIED:
            with self._lock:
                if self._starting:
                    logger.error(f"Location permission refused: {exc}. Ride not started.")
                    self.sink.status(error.description)
                    self._start_denied = True
                    return
            logger.error(f"Location permission lost: {exc}. Stopping ride.")
            self.sink.status(error.description)
            self.stop()
        elif error.code == TIMEOUT:
            logger.warning(f"Location timeout: {exc}")
            self.sink.status(error.description)
        else:
            logger.warning(f"Location unavailable: {exc}")
            self.sink.status(error.description)
