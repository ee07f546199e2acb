import math
import threading
import logging
from typing import List, Optional

logger = logging.getLogger("RoadRough")


class SignalFilter:
    """Single-pole high-pass filter over the vertical acceleration stream.

    Keeps an exponentially smoothed low-pass estimate ``L`` updated per sample
    as ``L = alpha * L + (1 - alpha) * x`` and buffers the residual ``x - L``.
    ``alpha`` applies per sample, so the effective corner frequency follows
    whatever rate the sensor pushes at.

    Ingestion may run on a sensor thread while the fusion loop drains, so the
    buffer is swapped out under the lock rather than iterated and cleared.
    """

    def __init__(self, alpha: float = 0.8):
        if not 0.0 <= alpha < 1.0:
            raise ValueError(f"alpha must be in [0, 1), got {alpha}")
        self.alpha = alpha
        self.low_pass = 0.0
        self._buffer: List[float] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def add_sample(self, value) -> Optional[float]:
        """Filter one raw sample and buffer it. Returns the filtered value.

        Absent or non-numeric samples are skipped and return None.
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if not math.isfinite(value):
            return None

        with self._lock:
            self.low_pass = self.alpha * self.low_pass + (1 - self.alpha) * value
            filtered = value - self.low_pass
            self._buffer.append(filtered)
        return filtered

    def handle_motion(self, sample) -> Optional[float]:
        """Motion stream callback: feeds the sample's vertical axis."""
        return self.add_sample(sample.vertical_acceleration)

    def drain(self) -> List[float]:
        """Take everything buffered since the last drain."""
        with self._lock:
            drained, self._buffer = self._buffer, []
        return drained

    def reset(self) -> None:
        with self._lock:
            self.low_pass = 0.0
            self._buffer = []
