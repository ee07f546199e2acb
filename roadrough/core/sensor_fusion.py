import threading
import logging

from ..config import Config
from ..errors import StorageFailure
from .data_structures import RidePoint
from .events import PresentationSink

logger = logging.getLogger("RoadRough")

WAITING_FOR_GPS = "Waiting for GPS…"


class SensorFusionLoop:
    """Fixed-period scheduler pairing the latest fix with the vibration window.

    Location fixes land in a single slot (latest wins, fixes between ticks
    are dropped). Every tick drains the signal filter, scores the window and
    emits one RidePoint for the armed ride.

    All state changes happen under ``lock``, which the recorder shares, so a
    tick never overlaps another tick or a start/stop.
    """

    def __init__(self, signal_filter, estimator, proximity_index, ride_buffer,
                 config=None, sink=None, lock=None, use_thread=True):
        self.config = config or Config()
        self.interval = getattr(self.config, 'DATA_INTERVAL_MS', 3000) / 1000.0
        self.signal_filter = signal_filter
        self.estimator = estimator
        self.proximity_index = proximity_index
        self.ride_buffer = ride_buffer
        self.sink = sink or PresentationSink()
        self.lock = lock or threading.RLock()
        self.use_thread = use_thread

        self.ride_id = None
        self._latest_fix = None

        # Thread control
        self._stop_event = None
        self._thread = None

    @property
    def armed(self):
        return self.ride_id is not None

    @property
    def latest_fix(self):
        with self.lock:
            return self._latest_fix

    def update_fix(self, fix):
        """Location stream callback: overwrite the latest-fix slot."""
        with self.lock:
            self._latest_fix = fix

    def arm(self, ride_id):
        """Start ticking for ``ride_id``."""
        with self.lock:
            if self.ride_id is not None:
                logger.warning(f"Fusion loop already armed for ride {self.ride_id}")
                return
            self.ride_id = ride_id

            if self.use_thread:
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._run,
                    args=(ride_id, self._stop_event),
                    name=f"fusion-loop-{ride_id}",
                    daemon=True,
                )
                self._thread.start()
        logger.info(f"Fusion loop armed for ride {ride_id} every {self.interval:.1f}s")

    def cancel(self):
        """Disarm the loop. No tick can touch the ride once this returns."""
        with self.lock:
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self._thread = None
            ride_id, self.ride_id = self.ride_id, None
            self._latest_fix = None
        if ride_id is not None:
            logger.info(f"Fusion loop disarmed for ride {ride_id}")

    def _run(self, ride_id, stop_event):
        """Thread function for the periodic tick"""
        logger.debug("Fusion loop thread started")
        while not stop_event.wait(self.interval):
            try:
                self.tick(expected_ride_id=ride_id)
            except Exception as e:
                logger.error(f"Error in fusion loop: {e}", exc_info=True)
        logger.debug("Fusion loop thread stopped")

    def tick(self, expected_ride_id=None):
        """Run one fusion step. Returns the new RidePoint, or None when starved."""
        with self.lock:
            ride_id = self.ride_id
            if expected_ride_id is not None and ride_id != expected_ride_id:
                # Timer outlived the ride it was armed for
                return None

            if ride_id is None or self._latest_fix is None:
                self.sink.status(WAITING_FOR_GPS)
                return None

            fix = self._latest_fix
            roughness = self.estimator.estimate_from(self.signal_filter)
            point = RidePoint.from_fix(ride_id, fix, roughness)
            self.ride_buffer.append(point)

            entry = None
            try:
                entry = self.proximity_index.merge(point)
            except StorageFailure as e:
                logger.error(f"Error updating roughness map: {e}")
                self.sink.status("Error updating roughness map.")

            self.sink.point_added(point)
            if entry is not None:
                self.sink.map_entry_upserted(entry)
            self.sink.status(
                f"Lat {point.latitude:.4f}, Lon {point.longitude:.4f}, Rough {point.roughness_value:.2f}"
            )
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Ride {ride_id}: point #{len(self.ride_buffer)} rough={roughness:.3f}")
            return point
