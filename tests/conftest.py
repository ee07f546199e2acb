import pytest

from roadrough.acquisition.base import LocationSource, MotionSource
from roadrough.core.events import PresentationSink
from roadrough.core.ride_recorder import RideRecorder
from roadrough.data_storage import DataStorage


class RecordingSink(PresentationSink):
    """Collects every event the pipeline publishes."""

    def __init__(self):
        self.points = []
        self.entries = []
        self.ride_lists = []
        self.statuses = []

    def point_added(self, point):
        self.points.append(point)

    def map_entry_upserted(self, entry):
        self.entries.append(entry)

    def ride_list_changed(self, rides):
        self.ride_lists.append(rides)

    def status(self, text):
        self.statuses.append(text)

    @property
    def last_status(self):
        return self.statuses[-1] if self.statuses else None


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def storage(tmp_path):
    return DataStorage(str(tmp_path / "roads.db"))


@pytest.fixture
def location():
    return LocationSource()


@pytest.fixture
def motion():
    return MotionSource()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder(storage, location, motion, sink, clock):
    return RideRecorder(storage, location, motion, sink=sink, clock=clock, use_timer_thread=False)
