"""
Coordinate mapping from model/image space to view space.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from ..data.types import CoordinateSpace, FrameContext, Keypoint, ViewGeometry


@dataclass(frozen=True)
class ViewTransform:
    """Aspect-preserving scale + centering offset."""
    scale: float
    offset_x: float
    offset_y: float
    
    def translate_x(self, x: float) -> float:
        return x * self.scale + self.offset_x
    
    def translate_y(self, y: float) -> float:
        return y * self.scale + self.offset_y


def compute_transform(frame: FrameContext, view: ViewGeometry) -> ViewTransform:
    """
    Fit the source frame into the view without distortion.
    
    Args:
        frame: Geometry of the source frame
        view: Geometry of the destination view
    
    Returns:
        Transform with s = min(vw / sw, vh / sh) and centering offsets
    """
    if frame.source_width <= 0 or frame.source_height <= 0:
        raise ValueError(
            f"Invalid source size: {frame.source_width}x{frame.source_height}"
        )
    if view.view_width < 0 or view.view_height < 0:
        raise ValueError(f"Invalid view size: {view.view_width}x{view.view_height}")
    
    scale = min(view.view_width / frame.source_width, view.view_height / frame.source_height)
    offset_x = (view.view_width - frame.source_width * scale) / 2
    offset_y = (view.view_height - frame.source_height * scale) / 2
    
    return ViewTransform(scale, offset_x, offset_y)


def map_point(
    x: float,
    y: float,
    transform: ViewTransform
) -> Tuple[float, float]:
    """Map a source pixel position to view coordinates."""
    return transform.translate_x(x), transform.translate_y(y)


def to_source_pixels(
    keypoint: Keypoint,
    frame: FrameContext,
    space: CoordinateSpace
) -> Tuple[float, float]:
    """Position of a keypoint in source pixels."""
    if space is CoordinateSpace.NORMALIZED:
        return keypoint.x * frame.source_width, keypoint.y * frame.source_height
    return keypoint.x, keypoint.y


def map_keypoints(
    keypoints: Iterable[Keypoint],
    frame: FrameContext,
    view: ViewGeometry,
    space: CoordinateSpace = CoordinateSpace.PIXEL
) -> Tuple[Keypoint, ...]:
    """
    Map keypoints into view coordinates.
    
    Args:
        keypoints: Decoded keypoints
        frame: Geometry of the frame the keypoints were decoded from
        view: Geometry of the destination view
        space: Coordinate space of the decoded positions
    
    Returns:
        New keypoints positioned in view coordinates
    """
    transform = compute_transform(frame, view)
    mapped = []
    
    for keypoint in keypoints:
        x, y = to_source_pixels(keypoint, frame, space)
        mapped.append(keypoint.with_position(*map_point(x, y, transform)))
    
    return tuple(mapped)
