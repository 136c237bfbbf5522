"""
Real-time pose detection and inference modules.
"""

from .detector import PoseDetector
from .frame_gate import FrameCountGate, TimeIntervalGate, create_frame_gate
from .frame_source import VideoCaptureSource
from .overlay import OpenCVSurface, OverlayRenderer, OverlayState, OverlayView, RenderSurface
from .realtime_detector import LatestFrameSlot, RealtimePoseDetector, SnapshotChannel
from .utils import compute_transform, map_keypoints

__all__ = [
    'PoseDetector', 'FrameCountGate', 'TimeIntervalGate', 'create_frame_gate',
    'VideoCaptureSource', 'OpenCVSurface', 'OverlayRenderer', 'OverlayState',
    'OverlayView', 'RenderSurface', 'LatestFrameSlot', 'RealtimePoseDetector',
    'SnapshotChannel', 'compute_transform', 'map_keypoints'
]
