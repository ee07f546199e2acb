import threading
import logging

from ..config import Config
from ..errors import SensorUnavailable
from ..core.cleanup import close_bus
from ..core.data_structures import MotionSample
from ..hardware.i2c_init import open_bus, wake_icm20948
from ..io.i2c_utils import read_vertical_accel
from .base import MotionSource

logger = logging.getLogger("RoadRough")


class I2CMotionSource(MotionSource):
    """Vertical acceleration from a local ICM20948, polled on a background thread.

    Samples are published in m/s^2 so they compare with phone readings.
    """

    def __init__(self, config=None, bus_factory=None):
        super().__init__()
        self.config = config or Config()
        self.bus_factory = bus_factory or (
            lambda: open_bus(getattr(self.config, 'I2C_BUS_NUMBER', 1))
        )
        self.poll_interval = getattr(self.config, 'ACCEL_POLL_INTERVAL', 0.02)
        self.gravity = getattr(self.config, 'STANDARD_GRAVITY', 9.80665)

        self.i2c_bus = None
        self._ready = False
        self._lock = threading.Lock()
        self._stop_event = None
        self._thread = None

    def request_permission(self):
        """Bring up the bus and the sensor. Raises SensorUnavailable if either is missing."""
        with self._lock:
            if self._ready:
                return True
            if self.i2c_bus is None:
                self.i2c_bus = self.bus_factory()
            if not self.i2c_bus:
                raise SensorUnavailable("I2C bus not available")
            if not wake_icm20948(self.i2c_bus, self.config):
                raise SensorUnavailable("ICM20948 not found")
            self._ready = True
            return True

    def subscribe(self, on_sample):
        self.request_permission()
        handle = super().subscribe(on_sample)
        with self._lock:
            if self._thread is None:
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._poll_loop, args=(self._stop_event,),
                    name="accel-acquisition", daemon=True,
                )
                self._thread.start()
        return handle

    def unsubscribe(self, handle):
        super().unsubscribe(handle)
        if self.subscriber_count == 0:
            self._stop_polling()

    def _stop_polling(self, join=False):
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if stop_event is not None:
            stop_event.set()
        # unsubscribe() can run under a subscriber lock the poll thread is waiting on; only close() joins
        if join and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _poll_loop(self, stop_event):
        """Thread function for accelerometer data acquisition"""
        logger.info("Accelerometer thread started")
        while not stop_event.is_set():
            try:
                accel_z = read_vertical_accel(self.i2c_bus, self.config)
                if accel_z is not None:
                    self.publish_sample(MotionSample(vertical_acceleration=accel_z * self.gravity))
                    logger.debug(f"Accelerometer: Z={accel_z:.2f}g")
            except OSError as e:
                logger.error(f"Error in accelerometer thread: {e}")
            stop_event.wait(self.poll_interval)
        logger.info("Accelerometer thread stopped")

    def close(self):
        self._stop_polling(join=True)
        close_bus(self.i2c_bus)
        self.i2c_bus = None
        self._ready = False
