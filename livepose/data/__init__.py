"""
Keypoint data types and frame preprocessing.
"""

from .types import (
    BodyPart, CameraFrame, CoordinateSpace, FrameContext, Keypoint,
    PoseSnapshot, ViewGeometry, KEYPOINT_CHANNEL_ORDER, SKELETON_EDGES
)
from .preprocessing import NormalizationMode, TensorEncoder, frame_to_rgb, rotated_context
from .utils import create_sample_image

__all__ = [
    'BodyPart', 'CameraFrame', 'CoordinateSpace', 'FrameContext', 'Keypoint',
    'PoseSnapshot', 'ViewGeometry', 'KEYPOINT_CHANNEL_ORDER', 'SKELETON_EDGES',
    'NormalizationMode', 'TensorEncoder', 'frame_to_rgb', 'rotated_context',
    'create_sample_image'
]
