import argparse
import threading
import time

import pytest

from livepose.errors import InferenceUnavailable, LiveposeError
from livepose.inference.detector import PoseDetector
from livepose.inference.frame_gate import FrameCountGate, TimeIntervalGate
from livepose.inference.overlay import OverlayView
from livepose.inference.realtime_detector import (
    LatestFrameSlot, RealtimePoseDetector, SnapshotChannel, build_config, handle_key, main
)

from conftest import FakeEngine, regression_output

TIMEOUT = 5.0


def wait_until(condition):
    deadline = time.monotonic() + TIMEOUT
    while not condition():
        assert time.monotonic() < deadline, "condition not reached"
        time.sleep(0.005)


class BlockingEngine(FakeEngine):
    """Holds every inference until released and tracks how many overlap."""
    
    def __init__(self):
        super().__init__([regression_output()])
        self.entered = threading.Event()
        self.proceed = threading.Event()
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()
    
    def infer(self, input_tensor):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        try:
            self.proceed.wait(TIMEOUT)
            return super().infer(input_tensor)
        finally:
            with self._lock:
                self.active -= 1


class SnapshotCollector:
    def __init__(self):
        self.snapshots = []
        self.event = threading.Event()
    
    def __call__(self, snapshot):
        self.snapshots.append(snapshot)
        self.event.set()
    
    def wait(self):
        assert self.event.wait(TIMEOUT), "no snapshot published"
        self.event.clear()
        return self.snapshots[-1]


def test_slot_keeps_only_latest_frame(make_frame):
    slot = LatestFrameSlot()
    first, second = make_frame(timestamp_ms=1), make_frame(timestamp_ms=2)
    
    slot.put(first)
    slot.put(second)
    
    assert make_frame.released == [first]
    assert slot.superseded == 1
    assert slot.take(timeout=0) is second
    assert slot.poll() is None


def test_closed_slot_releases_pending_and_new_frames(make_frame):
    slot = LatestFrameSlot()
    pending, late = make_frame(), make_frame()
    
    slot.put(pending)
    slot.close()
    accepted = slot.put(late)
    
    assert not accepted
    assert make_frame.released == [pending, late]
    assert slot.take(timeout=0) is None


def test_take_wakes_up_on_put():
    channel = SnapshotChannel()
    result = []
    
    reader = threading.Thread(target=lambda: result.append(channel.take(timeout=TIMEOUT)))
    reader.start()
    channel.put('snapshot')
    reader.join(TIMEOUT)
    
    assert result == ['snapshot']


def test_worker_publishes_snapshots_and_releases_frames(make_frame):
    collector = SnapshotCollector()
    detector = PoseDetector(FakeEngine([regression_output()]))
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(0), on_pose=collector)
    
    with realtime:
        frame = make_frame(timestamp_ms=10.0)
        assert realtime.submit(frame)
        snapshot = collector.wait()
    
    assert len(snapshot.keypoints) == 17
    assert snapshot.timestamp_ms == 10.0
    assert frame in make_frame.released
    assert realtime.latest_snapshot() is snapshot
    assert realtime.latest_snapshot() is None
    assert realtime.get_performance_stats()['frames_processed'] == 1


def test_gated_frames_are_released_without_inference(make_frame):
    collector = SnapshotCollector()
    engine = FakeEngine([regression_output()])
    detector = PoseDetector(engine)
    startup_calls = len(engine.received)
    realtime = RealtimePoseDetector(detector, FrameCountGate(2), on_pose=collector)
    
    with realtime:
        realtime.submit(make_frame(timestamp_ms=0))
        collector.wait()
        dropped = make_frame(timestamp_ms=1)
        realtime.submit(dropped)
        wait_until(lambda: dropped.released)
        realtime.submit(make_frame(timestamp_ms=2))
        collector.wait()
    
    assert dropped in make_frame.released
    assert len(engine.received) - startup_calls == 2
    assert len(make_frame.released) == 3


def test_unexpected_errors_publish_empty_snapshot(make_frame):
    collector = SnapshotCollector()
    engine = FakeEngine([regression_output()], error=RuntimeError('boom'))
    detector = PoseDetector(engine, validate=False)
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(0), on_pose=collector)
    
    with realtime:
        frame = make_frame(timestamp_ms=4.0)
        realtime.submit(frame)
        snapshot = collector.wait()
        assert realtime.is_running
    
    assert snapshot.is_empty
    assert isinstance(snapshot.error, LiveposeError)
    assert frame.released


def test_unavailable_engine_stops_worker(make_frame):
    unavailable = []
    stopped = threading.Event()
    
    def on_unavailable(error):
        unavailable.append(error)
        stopped.set()
    
    detector = PoseDetector(FakeEngine([regression_output()]))
    detector.close()
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(0), on_unavailable=on_unavailable)
    
    realtime.start()
    frame = make_frame()
    realtime.submit(frame)
    assert stopped.wait(TIMEOUT)
    realtime.stop()
    
    assert isinstance(unavailable[0], InferenceUnavailable)
    assert realtime.fatal_error is unavailable[0]
    assert not realtime.is_running
    assert frame.released
    
    late = make_frame()
    assert not realtime.submit(late)
    assert late.released
    
    with pytest.raises(InferenceUnavailable):
        realtime.start()


def test_stop_releases_pending_frame(make_frame):
    detector = PoseDetector(FakeEngine([regression_output()]))
    realtime = RealtimePoseDetector(detector)
    frame = make_frame()
    
    realtime.is_running = True  # accept without a worker
    realtime.submit(frame)
    realtime.stop()
    
    assert frame.released


def test_keyboard_toggles():
    view = OverlayView()
    
    assert handle_key(view, ord('d'))
    assert handle_key(view, ord('l'))
    assert handle_key(view, ord('b'))
    assert not handle_key(view, ord('q'))
    
    assert (view.state.debug_mode, view.state.show_labels, view.state.draw_background) == (False, False, True)


def parse(**overrides):
    values = dict(
        config=None, model=None, variant=None, engine=None, device=None, camera=None,
        resolution=None, rotation=None, gate=None, interval_ms=None, every_n=None
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def test_command_line_overrides_config_file(tmp_path):
    path = tmp_path / 'pipeline.json'
    path.write_text('{"model_path": "a.onnx", "gate": {"policy": "count", "every_n": 4}}')
    
    config = build_config(parse(config=str(path), camera=2, resolution=[1280, 720], every_n=6))
    
    assert config.model_path == 'a.onnx'
    assert config.camera_id == 2
    assert config.resolution == (1280, 720)
    assert config.gate.policy == 'count'
    assert config.gate.every_n == 6


def test_cli_requires_model():
    with pytest.raises(SystemExit):
        main(['--test-image', '--no-display'])


def test_cli_reports_missing_model_file(tmp_path, capsys):
    result = main(['--model', str(tmp_path / 'missing.onnx'), '--no-display'])
    
    assert result == 1
    assert 'Could not start pose detection' in capsys.readouterr().out


def test_busy_worker_keeps_only_latest_frame(make_frame):
    collector = SnapshotCollector()
    engine = BlockingEngine()
    detector = PoseDetector(engine, validate=False)
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(0), on_pose=collector)
    
    with realtime:
        first = make_frame(timestamp_ms=1.0)
        realtime.submit(first)
        assert engine.entered.wait(TIMEOUT)
        
        skipped, latest = make_frame(timestamp_ms=2.0), make_frame(timestamp_ms=3.0)
        realtime.submit(skipped)
        realtime.submit(latest)
        assert skipped.released
        assert not latest.released
        
        engine.proceed.set()
        wait_until(lambda: len(collector.snapshots) == 2)
    
    assert [s.timestamp_ms for s in collector.snapshots] == [1.0, 3.0]
    assert len(engine.received) == 2
    assert engine.max_active == 1
    assert realtime.get_performance_stats()['frames_superseded'] == 1


def test_restart_waits_for_in_flight_inference(make_frame):
    collector = SnapshotCollector()
    engine = BlockingEngine()
    detector = PoseDetector(engine, validate=False)
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(0), on_pose=collector)
    
    realtime.start()
    realtime.submit(make_frame(timestamp_ms=1.0))
    assert engine.entered.wait(TIMEOUT)
    realtime.stop(timeout=0.01)
    
    with pytest.raises(RuntimeError):
        realtime.start(timeout=0.01)
    
    engine.proceed.set()
    realtime.start()
    try:
        for t in range(2, 7):
            realtime.submit(make_frame(timestamp_ms=float(t)))
        wait_until(lambda: any(s.timestamp_ms == 6.0 for s in collector.snapshots))
    finally:
        realtime.stop()
    
    assert engine.max_active == 1


def test_failing_pose_callback_does_not_stop_worker(make_frame):
    seen = []
    
    def on_pose(snapshot):
        seen.append(snapshot)
        if len(seen) == 1:
            raise ValueError('display gone')
    
    detector = PoseDetector(FakeEngine([regression_output()]))
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(0), on_pose=on_pose)
    
    with realtime:
        realtime.submit(make_frame(timestamp_ms=1.0))
        wait_until(lambda: len(seen) == 1)
        realtime.submit(make_frame(timestamp_ms=2.0))
        wait_until(lambda: len(seen) == 2)
        
        assert realtime.is_running
        assert realtime.latest_snapshot().timestamp_ms == 2.0
    
    assert realtime.frames_processed == 2
