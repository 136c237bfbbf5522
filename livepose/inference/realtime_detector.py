"""
Real-time pose detection on live video streams.

Frames are processed on a dedicated worker thread. Incoming frames go through
a single-slot "latest frame wins" channel, so a slow model bounds the frame
rate instead of building a backlog; results come back as immutable
snapshots through a second single-slot channel read by the render loop.
"""

import argparse
import logging
import threading
import time
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

import cv2
import numpy as np

from .detector import PoseDetector
from .frame_gate import FrameGate, create_frame_gate
from .frame_source import VideoCaptureSource
from .overlay import GREEN, OpenCVSurface, OverlayRenderer, OverlayView
from ..config import GateConfig, PipelineConfig, load_config
from ..data.preprocessing import rotate_image
from ..data.types import CameraFrame, PoseSnapshot
from ..data.utils import create_sample_image, format_keypoints
from ..errors import InferenceUnavailable, LiveposeError
from ..models.base_model import MODEL_VARIANTS


logger = logging.getLogger(__name__)

T = TypeVar('T')


class LatestSlot(Generic[T]):
    """Single-slot channel where a new item replaces the pending one."""
    
    def __init__(self, on_discard: Optional[Callable[[T], None]] = None):
        """
        Initialize slot.
        
        Args:
            on_discard: Called with every item that is replaced or dropped
                without being taken
        """
        self._cond = threading.Condition()
        self._item: Optional[T] = None
        self._closed = False
        self.on_discard = on_discard
        self.superseded = 0
    
    def put(self, item: T) -> bool:
        """
        Store an item, replacing any pending one.
        
        Returns:
            False if the slot is closed (the item is discarded)
        """
        with self._cond:
            if self._closed:
                previous, accepted = item, False
            else:
                previous, accepted = self._item, True
                self._item = item
                if previous is not None:
                    self.superseded += 1
                self._cond.notify()
        
        if previous is not None and self.on_discard is not None:
            self.on_discard(previous)
        return accepted
    
    def take(self, timeout: Optional[float] = None) -> Optional[T]:
        """Wait for an item and remove it; None on timeout or close."""
        with self._cond:
            if self._item is None and not self._closed:
                self._cond.wait(timeout)
            item, self._item = self._item, None
            return item
    
    def poll(self) -> Optional[T]:
        """Remove and return the pending item without waiting."""
        with self._cond:
            item, self._item = self._item, None
            return item
    
    def close(self):
        """Close the slot, discarding any pending item."""
        with self._cond:
            self._closed = True
            item, self._item = self._item, None
            self._cond.notify_all()
        
        if item is not None and self.on_discard is not None:
            self.on_discard(item)
    
    @property
    def closed(self) -> bool:
        return self._closed


class LatestFrameSlot(LatestSlot[CameraFrame]):
    """Latest-wins frame channel; superseded frames are released."""
    
    def __init__(self):
        super().__init__(on_discard=lambda frame: frame.release())


class SnapshotChannel(LatestSlot[PoseSnapshot]):
    """Latest-wins channel carrying snapshots to the render context."""


class RealtimePoseDetector:
    """Real-time pose detection for live video streams."""
    
    def __init__(
        self,
        detector: PoseDetector,
        gate: Optional[FrameGate] = None,
        on_pose: Optional[Callable[[PoseSnapshot], None]] = None,
        on_unavailable: Optional[Callable[[InferenceUnavailable], None]] = None
    ):
        """
        Initialize real-time pose detector.
        
        Args:
            detector: Single-frame pose detector
            gate: Frame gate; a 100 ms time gate if None
            on_pose: Called on the worker thread with every published snapshot
            on_unavailable: Called once if the inference engine becomes unusable
        """
        self.detector = detector
        self.gate = gate or create_frame_gate(GateConfig())
        self.on_pose = on_pose
        self.on_unavailable = on_unavailable
        
        self.frame_slot = LatestFrameSlot()
        self.snapshot_slot = SnapshotChannel()
        
        self.is_running = False
        self.fatal_error: Optional[InferenceUnavailable] = None
        self._worker: Optional[threading.Thread] = None
        
        # Performance tracking
        self.frames_submitted = 0
        self.frames_processed = 0
        self.fps_counter = 0
        self.last_fps_time = time.time()
        self.current_fps = 0
    
    def start(self, timeout: Optional[float] = 5.0):
        """
        Start the worker thread.
        
        Args:
            timeout: How long to wait for a previous worker that is still
                finishing an inference
        
        Raises:
            RuntimeError: If the previous worker is still busy after timeout
        """
        if self.is_running:
            return
        if self.fatal_error is not None:
            raise self.fatal_error
        
        previous = self._worker
        if previous is not None and previous is not threading.current_thread():
            previous.join(timeout)
            if previous.is_alive():
                raise RuntimeError("Previous pose worker is still running an inference")
        
        if self.frame_slot.closed:
            self.frame_slot = LatestFrameSlot()
        
        self.is_running = True
        self._worker = threading.Thread(target=self._worker_loop, name='pose-worker', daemon=True)
        self._worker.start()
    
    def stop(self, timeout: Optional[float] = 5.0):
        """Stop the worker thread and release any pending frame."""
        self.is_running = False
        self.frame_slot.close()
        
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)
            if not worker.is_alive():
                self._worker = None
    
    def submit(self, frame: CameraFrame) -> bool:
        """
        Hand a frame to the worker.
        
        The frame is owned by the pipeline from here on: it is released after
        processing, when dropped by the gate, or when superseded by a newer frame.
        
        Returns:
            False if the detector is not running (the frame is released)
        """
        if not self.is_running:
            frame.release()
            return False
        
        self.frames_submitted += 1
        return self.frame_slot.put(frame)
    
    def latest_snapshot(self) -> Optional[PoseSnapshot]:
        """Take the newest unread snapshot, if any. Called from the render loop."""
        return self.snapshot_slot.poll()
    
    def _worker_loop(self):
        while self.is_running:
            frame = self.frame_slot.take(timeout=0.1)
            if frame is None:
                continue
            
            try:
                if not self.gate.admit(frame):
                    continue
                snapshot = self.detector.detect_frame(frame)
            except InferenceUnavailable as e:
                self._fail(e)
                break
            except Exception as e:
                logger.exception("Error in analysis of %r", frame)
                error = e if isinstance(e, LiveposeError) else LiveposeError(str(e))
                snapshot = PoseSnapshot.empty(frame.context, frame.timestamp_ms, error=error)
            finally:
                frame.release()
            
            self._publish(snapshot)
    
    def _publish(self, snapshot: PoseSnapshot):
        self.frames_processed += 1
        self._update_performance_stats()
        self.snapshot_slot.put(snapshot)
        
        if self.on_pose is not None:
            try:
                self.on_pose(snapshot)
            except Exception:
                logger.exception("Error in pose callback for frame at %.0f ms", snapshot.timestamp_ms)
    
    def _fail(self, error: InferenceUnavailable):
        logger.error("Inference engine unavailable, stopping pose detection: %s", error)
        self.fatal_error = error
        self.is_running = False
        self.frame_slot.close()
        
        if self.on_unavailable is not None:
            self.on_unavailable(error)
    
    def _update_performance_stats(self):
        self.fps_counter += 1
        current_time = time.time()
        
        if current_time - self.last_fps_time >= 1.0:  # Update FPS every second
            self.current_fps = self.fps_counter
            self.fps_counter = 0
            self.last_fps_time = current_time
    
    def get_performance_stats(self) -> Dict[str, Any]:
        """Get current performance statistics."""
        stats = dict(self.detector.get_performance_stats())
        stats.update({
            'fps': self.current_fps,
            'frames_submitted': self.frames_submitted,
            'frames_processed': self.frames_processed,
            'frames_superseded': self.frame_slot.superseded,
            'frames_gated': self.gate.dropped,
        })
        return stats
    
    def __enter__(self):
        self.start()
        return self
    
    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
        return False


def _add_fps_counter(frame: np.ndarray, fps: int):
    """Add FPS counter to a BGR frame."""
    cv2.putText(
        frame,
        f"FPS: {fps}",
        (10, frame.shape[0] - 20),
        cv2.FONT_HERSHEY_SIMPLEX,
        1,
        GREEN[::-1],
        2
    )


def handle_key(view: OverlayView, key: int) -> bool:
    """
    Apply a keyboard toggle to the overlay view.
    
    Returns:
        False when the key asks to quit
    """
    if key == ord('q'):
        return False
    if key == ord('d'):
        view.toggle_debug_mode()
    elif key == ord('l'):
        view.toggle_labels()
    elif key == ord('b'):
        view.toggle_background()
    return True


def run_webcam(detector: PoseDetector, config: PipelineConfig, display: bool = True):
    """
    Run real-time pose detection on a webcam.
    
    Args:
        detector: Pose detector
        config: Pipeline configuration
        display: Whether to display the video
    """
    source = VideoCaptureSource(
        config.camera_id, config.resolution, rotation_degrees=config.rotation_degrees
    )
    if not source.open():
        print("Failed to start camera")
        return
    
    view = OverlayView(OverlayRenderer(config.overlay))
    realtime = RealtimePoseDetector(detector, create_frame_gate(config.gate))
    
    print("Starting real-time pose detection.")
    print("Keys: 'd' debug panel, 'l' labels, 'b' background, 'q' quit")
    
    realtime.start()
    try:
        while realtime.is_running:
            frame = source.read()
            if frame is None:
                break
            
            display_frame = rotate_image(frame.pixels.copy(), frame.rotation_degrees)
            realtime.submit(frame)
            
            snapshot = realtime.latest_snapshot()
            if snapshot is not None:
                view.update_pose(snapshot)
            
            if display:
                view.render(OpenCVSurface(display_frame, channel_order='bgr'))
                _add_fps_counter(display_frame, realtime.current_fps)
                cv2.imshow('Real-time Pose Detection', display_frame)
                
                if not handle_key(view, cv2.waitKey(1) & 0xFF):
                    break
    
    except KeyboardInterrupt:
        print("Interrupted by user")
    
    finally:
        realtime.stop()
        source.close()
        if display:
            cv2.destroyAllWindows()
    
    if realtime.fatal_error is not None:
        print(f"Pose detection disabled: {realtime.fatal_error}")
    
    print(f"Performance: {realtime.get_performance_stats()}")


def run_test_image(
    detector: PoseDetector,
    config: PipelineConfig,
    output_path: Optional[str] = None,
    display: bool = True
) -> PoseSnapshot:
    """
    Run the detector once on a generated stick figure image.
    
    Args:
        detector: Pose detector
        config: Pipeline configuration
        output_path: Where to write the rendered overlay
        display: Whether to show the rendered overlay
    
    Returns:
        Snapshot decoded from the test image
    """
    image = create_sample_image()
    print(f"Test image created: {image.shape[1]}x{image.shape[0]}")
    
    snapshot = detector.detect_image(image)
    print(f"Test image detection complete, found {len(snapshot.keypoints)} keypoints")
    for line in format_keypoints(snapshot.keypoints):
        print(f"  {line}")
    
    view = OverlayView(OverlayRenderer(config.overlay))
    view.update_pose(snapshot)
    
    canvas = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    view.render(OpenCVSurface(canvas, channel_order='bgr'))
    
    if output_path:
        cv2.imwrite(output_path, canvas)
        print(f"Overlay saved to {output_path}")
    
    if display:
        cv2.imshow('Static Image Test', canvas)
        cv2.waitKey(0)
        cv2.destroyAllWindows()
    
    return snapshot


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Merge command-line arguments over the (optional) config file."""
    config = load_config(args.config) if args.config else PipelineConfig()
    
    if args.variant:
        config.model_variant = args.variant
    if args.model:
        config.model_path = args.model
    if args.engine:
        config.engine = args.engine
    if args.device:
        config.device = args.device
    if args.camera is not None:
        config.camera_id = args.camera
    if args.resolution:
        config.resolution = tuple(args.resolution)
    if args.rotation is not None:
        config.rotation_degrees = args.rotation
    if args.gate or args.interval_ms is not None or args.every_n is not None:
        config.gate = GateConfig(
            policy=args.gate or config.gate.policy,
            interval_ms=args.interval_ms if args.interval_ms is not None else config.gate.interval_ms,
            every_n=args.every_n if args.every_n is not None else config.gate.every_n
        )
    
    return config


def main(argv=None):
    """Main function for command-line usage."""
    parser = argparse.ArgumentParser(description='Real-time Pose Detection')
    parser.add_argument('--config', type=str, default=None,
                       help='JSON configuration file')
    parser.add_argument('--model', type=str, default=None,
                       help='Path to model file (.onnx or TorchScript)')
    parser.add_argument('--variant', type=str, default=None,
                       choices=sorted(MODEL_VARIANTS),
                       help='Model variant')
    parser.add_argument('--engine', type=str, default=None,
                       choices=['onnx', 'torch'],
                       help='Inference engine')
    parser.add_argument('--device', type=str, default=None,
                       choices=['cpu', 'cuda'],
                       help='Device to run inference on')
    parser.add_argument('--camera', type=int, default=None,
                       help='Camera ID')
    parser.add_argument('--resolution', type=int, nargs=2, default=None,
                       help='Video resolution (width height)')
    parser.add_argument('--rotation', type=int, default=None,
                       choices=[0, 90, 180, 270],
                       help='Clockwise rotation of camera frames')
    parser.add_argument('--gate', type=str, default=None,
                       choices=['time', 'count'],
                       help='Frame gate policy')
    parser.add_argument('--interval-ms', type=float, default=None,
                       help='Minimum time between processed frames')
    parser.add_argument('--every-n', type=int, default=None,
                       help='Process every Nth frame')
    parser.add_argument('--test-image', action='store_true',
                       help='Run once on a generated stick figure instead of the camera')
    parser.add_argument('--output', type=str, default=None,
                       help='Output path for the test image overlay')
    parser.add_argument('--no-display', action='store_true',
                       help='Disable video display')
    parser.add_argument('--debug', action='store_true',
                       help='Enable debug logging')
    
    args = parser.parse_args(argv)
    
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    
    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        parser.error(f"invalid configuration: {e}")
    
    if not config.model_path:
        parser.error("a model file is required (--model or model_path in --config)")
    
    try:
        detector = PoseDetector(
            model_variant=config.model_variant,
            model_path=config.model_path,
            engine_type=config.engine,
            providers=config.providers,
            device=config.device
        )
    except (LiveposeError, ValueError) as e:
        print(f"Could not start pose detection: {e}")
        return 1
    
    try:
        if args.test_image:
            run_test_image(detector, config, args.output, display=not args.no_display)
        else:
            run_webcam(detector, config, display=not args.no_display)
    finally:
        detector.close()
    
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
