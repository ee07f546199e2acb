import itertools
import threading
import logging

logger = logging.getLogger("RoadRough")


class _Subscribers:
    """Thread-safe registry of callbacks keyed by an opaque handle."""

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks = {}
        self._handles = itertools.count(1)

    def __len__(self):
        with self._lock:
            return len(self._callbacks)

    def add(self, callbacks):
        with self._lock:
            handle = next(self._handles)
            self._callbacks[handle] = callbacks
        return handle

    def remove(self, handle):
        with self._lock:
            return self._callbacks.pop(handle, None) is not None

    def snapshot(self):
        with self._lock:
            return list(self._callbacks.values())


class LocationSource:
    """Push-based stream of location fixes.

    ``subscribe(on_fix, on_error)`` returns a handle for ``unsubscribe``.
    Subclasses call ``publish_fix`` / ``publish_error`` as readings arrive.
    """

    def __init__(self):
        self._subscribers = _Subscribers()

    @property
    def subscriber_count(self):
        return len(self._subscribers)

    def subscribe(self, on_fix, on_error=None):
        return self._subscribers.add((on_fix, on_error))

    def unsubscribe(self, handle):
        self._subscribers.remove(handle)

    def publish_fix(self, fix):
        for on_fix, _ in self._subscribers.snapshot():
            try:
                on_fix(fix)
            except Exception as e:
                logger.error(f"Error delivering location fix: {e}", exc_info=True)

    def publish_error(self, error):
        for _, on_error in self._subscribers.snapshot():
            if on_error is None:
                continue
            try:
                on_error(error)
            except Exception as e:
                logger.error(f"Error delivering location error: {e}", exc_info=True)


class MotionSource:
    """Push-based stream of raw vertical acceleration samples."""

    def __init__(self):
        self._subscribers = _Subscribers()

    @property
    def subscriber_count(self):
        return len(self._subscribers)

    def request_permission(self):
        """Sources without a permission step are pre-granted."""
        return True

    def subscribe(self, on_sample):
        return self._subscribers.add(on_sample)

    def unsubscribe(self, handle):
        self._subscribers.remove(handle)

    def publish_sample(self, sample):
        for on_sample in self._subscribers.snapshot():
            try:
                on_sample(sample)
            except Exception as e:
                logger.error(f"Error delivering motion sample: {e}", exc_info=True)
