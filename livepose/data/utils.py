"""
Utility functions for pose data.
"""

from typing import List, Sequence

import cv2
import numpy as np

from .types import Keypoint


def create_sample_image(width: int = 500, height: int = 800) -> np.ndarray:
    """
    Create a stick figure test image for checking a model end to end.
    
    Args:
        width: Image width
        height: Image height
    
    Returns:
        RGB image [height, width, 3] with a black stick figure on white
    """
    image = np.full((height, width, 3), 255, dtype=np.uint8)
    
    # Figure coordinates are laid out on a 500x800 canvas
    sx = width / 500.0
    sy = height / 800.0
    thickness = max(1, int(round(10 * min(sx, sy))))
    black = (0, 0, 0)
    
    def point(x, y):
        return int(round(x * sx)), int(round(y * sy))
    
    # Head
    cv2.circle(image, point(250, 150), int(round(50 * min(sx, sy))), black, thickness)
    
    # Body
    cv2.line(image, point(250, 200), point(250, 400), black, thickness)
    
    # Arms
    cv2.line(image, point(250, 250), point(150, 300), black, thickness)
    cv2.line(image, point(250, 250), point(350, 300), black, thickness)
    
    # Legs
    cv2.line(image, point(250, 400), point(150, 600), black, thickness)
    cv2.line(image, point(250, 400), point(350, 600), black, thickness)
    
    return image


def format_keypoint(keypoint: Keypoint) -> str:
    return f"{keypoint.name}: x={keypoint.x:.1f}, y={keypoint.y:.1f}, confidence={keypoint.confidence:.3f}"


def format_keypoints(keypoints: Sequence[Keypoint]) -> List[str]:
    """One human-readable line per keypoint."""
    return [format_keypoint(kp) for kp in keypoints]
