import time

import numpy as np
import pytest

from roadrough.acquisition.base import LocationSource, MotionSource
from roadrough.analysis.signal_filter import SignalFilter
from roadrough.config import Config
from roadrough.core.data_structures import (
    LocationError, LocationFix, MotionSample, PERMISSION_DENIED, TIMEOUT, UNAVAILABLE,
)
from roadrough.core.ride_recorder import RecorderState, RideRecorder
from roadrough.data_storage import RIDE_POINTS, RIDES, DataStorage
from roadrough.errors import PermissionDenied, StorageFailure


def feed(motion, values):
    for value in values:
        motion.publish_sample(MotionSample(vertical_acceleration=value))


def expected_roughness(values):
    f = SignalFilter()
    for value in values:
        f.add_sample(value)
    return float(np.var(f.drain()))


class DeniedLocation(LocationSource):
    def subscribe(self, on_fix, on_error=None):
        raise PermissionDenied("Location permission denied.")


class DenyWhileSubscribing(LocationSource):
    def subscribe(self, on_fix, on_error=None):
        handle = super().subscribe(on_fix, on_error)
        on_error(LocationError(PERMISSION_DENIED))
        return handle


class DeniedMotion(MotionSource):
    def request_permission(self):
        return False


class ExplodingMotion(MotionSource):
    def request_permission(self):
        raise RuntimeError("sensor framework crashed")


class FailingFlushStorage(DataStorage):
    def finalize_ride(self, ride, points):
        raise StorageFailure("disk full")


class TestLifecycle:
    def test_start_subscribes_and_stores_active_ride(self, recorder, storage, location, motion, sink):
        ride_id = recorder.start()

        assert ride_id == 1_700_000_000_000
        assert recorder.state is RecorderState.RECORDING
        assert location.subscriber_count == 1
        assert motion.subscriber_count == 1
        assert storage.get(RIDES, ride_id)["status"] == "active"
        assert sink.last_status == "Recording… waiting for GPS."

    def test_start_while_recording_is_a_noop(self, recorder, location, motion):
        first = recorder.start()

        assert recorder.start() is None
        assert recorder.current_ride.ride_id == first
        assert location.subscriber_count == 1
        assert motion.subscriber_count == 1

    def test_stop_while_idle_is_a_noop(self, recorder, storage, sink):
        assert recorder.stop() is None
        assert storage.get_all(RIDES) == []
        assert sink.statuses == []

    def test_stop_unsubscribes_and_returns_to_idle(self, recorder, location, motion):
        recorder.start()
        recorder.stop()

        assert recorder.state is RecorderState.IDLE
        assert recorder.current_ride is None
        assert location.subscriber_count == 0
        assert motion.subscriber_count == 0
        assert recorder.stop() is None

    def test_ride_ids_stay_unique_within_one_millisecond(self, recorder):
        first = recorder.start()
        recorder.stop()
        second = recorder.start()

        assert second == first + 1


class TestRecording:
    def test_single_point_ride_end_to_end(self, recorder, storage, location, motion, sink, clock):
        samples = [1.0, 2.0, 3.0, 2.0, 1.0]
        ride_id = recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        feed(motion, samples)

        point = recorder.tick()
        clock.advance(10)
        ride = recorder.stop()

        assert point.roughness_value == pytest.approx(expected_roughness(samples))
        assert ride.status == "completed"
        assert ride.total_points == 1
        assert ride.duration_seconds == 10
        assert ride.end_time == ride_id + 10_000
        assert storage.get(RIDES, ride_id)["status"] == "completed"
        stored = storage.get_by_foreign_key(RIDE_POINTS, ride_id)
        assert [r["id"] for r in stored] == [point.id]
        assert sink.ride_lists[-1][0].ride_id == ride_id
        assert "Ride saved!" in sink.statuses

    def test_points_are_stored_in_creation_order(self, recorder, storage, location, motion):
        ride_id = recorder.start()
        created = []
        for i in range(4):
            location.publish_fix(LocationFix(latitude=51.0 + i * 0.001, longitude=-114.0, timestamp=1000 * i))
            feed(motion, [9.8, 10.5, 9.1])
            created.append(recorder.tick().id)

        assert [p.id for p in recorder.points] == created
        ride = recorder.stop()

        assert ride.total_points == 4
        assert [r["id"] for r in storage.get_by_foreign_key(RIDE_POINTS, ride_id)] == created

    def test_no_points_until_first_fix(self, recorder, motion, sink):
        recorder.start()
        feed(motion, [1.0, 5.0])

        assert recorder.tick() is None
        assert sink.last_status == "Waiting for GPS…"
        assert recorder.points == []

    def test_each_window_only_covers_samples_since_last_tick(self, recorder, location, motion):
        recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        feed(motion, [1.0, 7.0, -3.0])
        assert recorder.tick().roughness_value > 0

        assert recorder.tick().roughness_value == 0.0

    def test_readings_after_stop_are_ignored(self, recorder, location, motion):
        recorder.start()
        recorder.stop()

        recorder._on_motion(MotionSample(vertical_acceleration=4.0))
        recorder._on_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1))

        assert len(recorder.signal_filter) == 0
        assert recorder.fusion_loop.latest_fix is None

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_fix_keeps_last_good_position(self, recorder, storage, location, bad):
        ride_id = recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        location.publish_fix(LocationFix(latitude=bad, longitude=-114.0, timestamp=2000))
        location.publish_fix(LocationFix(latitude=51.0, longitude=bad, timestamp=3000))

        point = recorder.tick()
        ride = recorder.stop()

        assert point.latitude == 51.0
        assert ride.total_points == 1
        assert storage.get_by_foreign_key(RIDE_POINTS, ride_id)[0]["latitude"] == 51.0

    def test_nearby_history_reads_the_shared_map(self, recorder, location):
        recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        recorder.tick()
        recorder.stop()

        assert len(recorder.nearby_history(51.0005, -114.0)) == 1
        assert recorder.nearby_history(52.0, -114.0) == []


class TestDegradedSensors:
    def test_location_permission_denied_at_start(self, storage, motion, sink, clock):
        recorder = RideRecorder(storage, DeniedLocation(), motion, sink=sink, clock=clock,
                                use_timer_thread=False)

        assert recorder.start() is None
        assert recorder.state is RecorderState.IDLE
        assert motion.subscriber_count == 0
        assert sink.last_status == "Location permission denied."

    def test_location_permission_denied_while_subscribing(self, storage, motion, sink, clock):
        location = DenyWhileSubscribing()
        recorder = RideRecorder(storage, location, motion, sink=sink, clock=clock,
                                use_timer_thread=False)

        assert recorder.start() is None
        assert recorder.state is RecorderState.IDLE
        assert location.subscriber_count == 0
        assert motion.subscriber_count == 0
        assert storage.get_all(RIDES) == []
        assert "Permission denied" in sink.statuses
        assert "Ride saved!" not in sink.statuses

    def test_start_works_again_after_refused_subscription(self, storage, motion, sink, clock):
        recorder = RideRecorder(storage, DenyWhileSubscribing(), motion, sink=sink, clock=clock,
                                use_timer_thread=False)
        assert recorder.start() is None

        recorder.location_source = LocationSource()
        ride_id = recorder.start()

        assert ride_id is not None
        assert recorder.state is RecorderState.RECORDING
        assert [ride["ride_id"] for ride in storage.get_all(RIDES)] == [ride_id]

    def test_location_permission_revoked_stops_the_ride(self, recorder, storage, location, sink):
        ride_id = recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        recorder.tick()

        location.publish_error(LocationError(PERMISSION_DENIED))

        assert recorder.state is RecorderState.IDLE
        assert "Permission denied" in sink.statuses
        assert storage.get(RIDES, ride_id)["total_points"] == 1

    @pytest.mark.parametrize("code, text", [(TIMEOUT, "Timed out"), (UNAVAILABLE, "Unavailable")])
    def test_transient_location_errors_keep_recording(self, recorder, location, sink, code, text):
        recorder.start()

        location.publish_error(LocationError(code))

        assert recorder.is_recording
        assert sink.last_status == text

    def test_missing_motion_sensor_records_zero_roughness(self, storage, location, sink, clock):
        recorder = RideRecorder(storage, location, None, sink=sink, clock=clock, use_timer_thread=False)

        recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))

        assert "Motion sensor not available." in sink.statuses
        assert recorder.motion_available is False
        assert recorder.tick().roughness_value == 0.0

    def test_motion_permission_denied_records_zero_roughness(self, storage, location, sink, clock):
        motion = DeniedMotion()
        recorder = RideRecorder(storage, location, motion, sink=sink, clock=clock, use_timer_thread=False)

        recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        feed(motion, [1.0, 9.0])

        assert "Motion permission denied." in sink.statuses
        assert motion.subscriber_count == 0
        assert recorder.tick().roughness_value == 0.0

    def test_motion_permission_error_does_not_abort_start(self, storage, location, sink, clock):
        recorder = RideRecorder(storage, location, ExplodingMotion(), sink=sink, clock=clock,
                                use_timer_thread=False)

        assert recorder.start() is not None
        assert "Error requesting motion permission." in sink.statuses


class TestFlushFailure:
    def test_failed_flush_clears_state_and_allows_restart(self, tmp_path, location, motion, sink, clock):
        storage = FailingFlushStorage(str(tmp_path / "roads.db"))
        recorder = RideRecorder(storage, location, motion, sink=sink, clock=clock, use_timer_thread=False)
        recorder.start()
        location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))
        recorder.tick()

        assert recorder.stop() is None
        assert recorder.state is RecorderState.IDLE
        assert recorder.points == []
        assert "Error saving ride." in sink.statuses
        assert location.subscriber_count == 0

        assert recorder.start() is not None
        assert recorder.is_recording


def test_timer_thread_produces_points_until_stop(storage, location, motion, sink):
    class FastConfig(Config):
        DATA_INTERVAL_MS = 20

    recorder = RideRecorder(storage, location, motion, config=FastConfig(), sink=sink)
    ride_id = recorder.start()
    location.publish_fix(LocationFix(latitude=51.0, longitude=-114.0, timestamp=1000))

    deadline = time.time() + 5
    while len(recorder.points) < 3 and time.time() < deadline:
        time.sleep(0.01)
    ride = recorder.stop()
    stored = len(storage.get_by_foreign_key(RIDE_POINTS, ride_id))
    time.sleep(0.1)

    assert ride.total_points >= 3
    assert stored == ride.total_points
    assert len(storage.get_by_foreign_key(RIDE_POINTS, ride_id)) == stored
    assert recorder.points == []
