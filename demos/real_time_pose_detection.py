"""
Headless real-time pose detection demo.

Feeds a webcam or video file through the background worker and prints a
summary of every published snapshot. With --nv21 the frames are handed over
as NV21 buffers, the way a phone camera delivers them.
"""

import argparse
import logging
import time

import cv2
import numpy as np

from livepose.data.types import CameraFrame
from livepose.data.utils import format_keypoints
from livepose.errors import LiveposeError
from livepose.inference import (
    PoseDetector, RealtimePoseDetector, TimeIntervalGate, VideoCaptureSource
)
from livepose.models.base_model import MODEL_VARIANTS


def to_nv21(frame: CameraFrame) -> CameraFrame:
    """Re-encode a BGR frame as an NV21 frame and release the BGR one."""
    height, width = frame.height - frame.height % 2, frame.width - frame.width % 2
    bgr = frame.pixels[:height, :width]
    
    i420 = cv2.cvtColor(bgr, cv2.COLOR_BGR2YUV_I420).reshape(-1)
    y_size, quarter = width * height, width * height // 4
    u = i420[y_size:y_size + quarter]
    v = i420[y_size + quarter:]
    
    vu = np.empty(2 * quarter, dtype=np.uint8)
    vu[0::2] = v
    vu[1::2] = u
    
    nv21 = CameraFrame(
        np.concatenate([i420[:y_size], vu]).tobytes(),
        width, height,
        rotation_degrees=frame.rotation_degrees,
        timestamp_ms=frame.timestamp_ms,
        pixel_format='nv21'
    )
    frame.release()
    return nv21


def print_snapshot(snapshot):
    if snapshot.error is not None:
        print(f"[{snapshot.timestamp_ms:.0f} ms] frame dropped: {snapshot.error}")
        return
    
    visible = [kp for kp in snapshot.keypoints if kp.confidence > 0.35]
    print(f"[{snapshot.timestamp_ms:.0f} ms] {len(visible)}/{len(snapshot.keypoints)} keypoints visible")
    for line in format_keypoints(visible):
        print(f"    {line}")


def main():
    """Main function for the headless real-time demo."""
    parser = argparse.ArgumentParser(description='Headless Real-time Pose Detection Demo')
    parser.add_argument('--model', type=str, required=True,
                       help='Path to model file')
    parser.add_argument('--variant', type=str, default='movenet_lightning',
                       choices=sorted(MODEL_VARIANTS),
                       help='Model variant')
    parser.add_argument('--source', type=str, default='0',
                       help='Camera ID or video file path')
    parser.add_argument('--interval-ms', type=float, default=100.0,
                       help='Minimum time between processed frames')
    parser.add_argument('--duration', type=float, default=10.0,
                       help='Seconds to run')
    parser.add_argument('--nv21', action='store_true',
                       help='Deliver frames as NV21 buffers')
    
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    
    print("Real-time Pose Detection Demo")
    print("=" * 40)
    print(f"Model: {args.model} ({args.variant})")
    print(f"Source: {args.source}")
    print(f"Frame format: {'nv21' if args.nv21 else 'bgr'}")
    print("=" * 40)
    
    try:
        detector = PoseDetector(model_variant=args.variant, model_path=args.model)
    except LiveposeError as e:
        print(f"Error: {e}")
        return
    
    source = VideoCaptureSource(int(args.source) if args.source.isdigit() else args.source)
    if not source.open():
        print("Failed to open video source")
        detector.close()
        return
    
    realtime = RealtimePoseDetector(detector, TimeIntervalGate(args.interval_ms), on_pose=print_snapshot)
    deadline = time.time() + args.duration
    
    try:
        with realtime:
            for frame in source.frames():
                if not realtime.is_running or time.time() > deadline:
                    frame.release()
                    break
                realtime.submit(to_nv21(frame) if args.nv21 else frame)
    
    except KeyboardInterrupt:
        print("Interrupted by user")
    
    finally:
        source.close()
        detector.close()
    
    print(f"Performance: {realtime.get_performance_stats()}")
    print(f"Frames still held by the pipeline: {source.outstanding}")


if __name__ == '__main__':
    main()
