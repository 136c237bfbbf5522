"""
Skeleton overlay rendering with confidence-dependent styling.

The renderer only talks to a RenderSurface, which supplies the view geometry
and a handful of draw primitives. OpenCVSurface draws onto a numpy image.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

import cv2
import numpy as np

from .utils import map_keypoints
from ..config import OverlayConfig
from ..data.types import SKELETON_EDGES, BodyPart, Keypoint, PoseSnapshot, ViewGeometry


logger = logging.getLogger(__name__)

# Confidence thresholds
HIGH_CONFIDENCE = 0.70
MEDIUM_CONFIDENCE = 0.35
LOW_CONFIDENCE = 0.15

# RGB colors
RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
YELLOW = (255, 255, 0)
CYAN = (0, 255, 255)
MAGENTA = (255, 0, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)

Color = Tuple[int, int, int]

BODY_PART_COLORS: Dict[BodyPart, Color] = {
    BodyPart.NOSE: RED,
    BodyPart.LEFT_EYE: YELLOW,
    BodyPart.RIGHT_EYE: YELLOW,
    BodyPart.LEFT_EAR: YELLOW,
    BodyPart.RIGHT_EAR: YELLOW,
    BodyPart.LEFT_SHOULDER: GREEN,
    BodyPart.RIGHT_SHOULDER: GREEN,
    BodyPart.LEFT_ELBOW: CYAN,
    BodyPart.RIGHT_ELBOW: CYAN,
    BodyPart.LEFT_WRIST: BLUE,
    BodyPart.RIGHT_WRIST: BLUE,
    BodyPart.LEFT_HIP: MAGENTA,
    BodyPart.RIGHT_HIP: MAGENTA,
    BodyPart.LEFT_KNEE: YELLOW,
    BodyPart.RIGHT_KNEE: YELLOW,
    BodyPart.LEFT_ANKLE: WHITE,
    BodyPart.RIGHT_ANKLE: WHITE,
}

NO_DETECTION_LINES = ("No keypoints detected", "Try showing your full body")

BACKGROUND_ALPHA = 100 / 255


class ConfidenceTier(Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'
    HIDDEN = 'hidden'


def confidence_tier(confidence: float) -> ConfidenceTier:
    """Classify a confidence value into its display tier."""
    if confidence > HIGH_CONFIDENCE:
        return ConfidenceTier.HIGH
    if confidence > MEDIUM_CONFIDENCE:
        return ConfidenceTier.MEDIUM
    if confidence > LOW_CONFIDENCE:
        return ConfidenceTier.LOW
    return ConfidenceTier.HIDDEN


def count_tiers(keypoints: Sequence[Keypoint]) -> Dict[ConfidenceTier, int]:
    counts = {tier: 0 for tier in ConfidenceTier}
    for keypoint in keypoints:
        counts[confidence_tier(keypoint.confidence)] += 1
    return counts


@dataclass(frozen=True)
class EdgeStyle:
    color: Color
    thickness: float


def edge_style(
    first: Keypoint,
    second: Keypoint,
    line_thickness: float = 10.0
) -> Optional[EdgeStyle]:
    """
    Style for the skeleton edge between two keypoints.
    
    Args:
        first: First endpoint
        second: Second endpoint
        line_thickness: Base line thickness
    
    Returns:
        Edge style, or None when neither endpoint exceeds the medium tier
    """
    if first.confidence <= MEDIUM_CONFIDENCE and second.confidence <= MEDIUM_CONFIDENCE:
        return None
    
    avg_confidence = (first.confidence + second.confidence) / 2
    
    if avg_confidence > HIGH_CONFIDENCE:
        color = GREEN
    elif avg_confidence > MEDIUM_CONFIDENCE:
        color = YELLOW
    else:
        color = RED
    
    return EdgeStyle(color, line_thickness * (0.5 + avg_confidence))


def marker_radius(confidence: float, point_size: float = 30.0) -> float:
    return point_size * (0.5 + confidence / 2)


@dataclass(frozen=True)
class OverlayState:
    """Presentation toggles passed into each draw call."""
    debug_mode: bool = True
    show_labels: bool = True
    draw_background: bool = False
    
    @classmethod
    def from_config(cls, config: OverlayConfig) -> 'OverlayState':
        return cls(config.debug_mode, config.show_labels, config.draw_background)
    
    def toggled_debug_mode(self) -> 'OverlayState':
        return replace(self, debug_mode=not self.debug_mode)
    
    def toggled_labels(self) -> 'OverlayState':
        return replace(self, show_labels=not self.show_labels)
    
    def toggled_background(self) -> 'OverlayState':
        return replace(self, draw_background=not self.draw_background)


class RenderSurface(ABC):
    """Drawing surface supplied by the display collaborator."""
    
    @property
    @abstractmethod
    def geometry(self) -> ViewGeometry:
        pass
    
    @abstractmethod
    def fill_circle(self, x: float, y: float, radius: float, color: Color):
        pass
    
    @abstractmethod
    def stroke_line(self, x1: float, y1: float, x2: float, y2: float, color: Color, thickness: float):
        pass
    
    @abstractmethod
    def draw_text(self, text: str, x: float, y: float, color: Color, size: float):
        """Draw text with a drop shadow, baseline at y."""
        pass
    
    @abstractmethod
    def fill_rect(self, x0: float, y0: float, x1: float, y1: float, color: Color, alpha: float = 1.0):
        pass


class OpenCVSurface(RenderSurface):
    """Render surface drawing onto a numpy image with OpenCV."""
    
    def __init__(self, image: np.ndarray, channel_order: str = 'bgr'):
        """
        Initialize OpenCV surface.
        
        Args:
            image: Image [H, W, 3] drawn on in place
            channel_order: Channel order of the image ('bgr', 'rgb')
        """
        if channel_order not in ('bgr', 'rgb'):
            raise ValueError(f"Unsupported channel order: {channel_order}")
        self.image = image
        self.channel_order = channel_order
    
    @property
    def geometry(self) -> ViewGeometry:
        height, width = self.image.shape[:2]
        return ViewGeometry(width, height)
    
    def _color(self, color: Color) -> Color:
        if self.channel_order == 'bgr':
            return color[2], color[1], color[0]
        return color
    
    def fill_circle(self, x, y, radius, color):
        cv2.circle(self.image, (int(x), int(y)), max(1, int(round(radius))), self._color(color), -1)
    
    def stroke_line(self, x1, y1, x2, y2, color, thickness):
        cv2.line(
            self.image,
            (int(x1), int(y1)),
            (int(x2), int(y2)),
            self._color(color),
            max(1, int(round(thickness))),
            cv2.LINE_AA
        )
    
    def draw_text(self, text, x, y, color, size):
        font_scale = size / 40.0
        thickness = max(1, int(round(size / 20.0)))
        
        # Shadow for visibility
        cv2.putText(
            self.image, text, (int(x) + 2, int(y) + 2),
            cv2.FONT_HERSHEY_SIMPLEX, font_scale, self._color(BLACK), thickness + 1, cv2.LINE_AA
        )
        cv2.putText(
            self.image, text, (int(x), int(y)),
            cv2.FONT_HERSHEY_SIMPLEX, font_scale, self._color(color), thickness, cv2.LINE_AA
        )
    
    def fill_rect(self, x0, y0, x1, y1, color, alpha=1.0):
        height, width = self.image.shape[:2]
        x0, x1 = sorted((max(0, int(x0)), min(width, int(x1))))
        y0, y1 = sorted((max(0, int(y0)), min(height, int(y1))))
        if x0 == x1 or y0 == y1:
            return
        
        region = self.image[y0:y1, x0:x1]
        fill = np.empty_like(region)
        fill[:] = self._color(color)
        
        if alpha >= 1.0:
            region[:] = fill
        else:
            region[:] = cv2.addWeighted(fill, alpha, region, 1.0 - alpha, 0)


class OverlayRenderer:
    """Draws keypoints and skeleton edges onto a render surface."""
    
    def __init__(self, config: Optional[OverlayConfig] = None):
        """
        Initialize overlay renderer.
        
        Args:
            config: Appearance settings
        """
        self.config = config or OverlayConfig()
    
    def draw(
        self,
        surface: RenderSurface,
        keypoints: Sequence[Keypoint],
        state: OverlayState = OverlayState()
    ):
        """
        Draw a keypoint set already mapped to view coordinates.
        
        Args:
            surface: Target surface
            keypoints: Keypoints in view coordinates
            state: Presentation toggles
        """
        if not keypoints:
            self._draw_no_keypoints(surface)
            return
        
        if state.draw_background:
            geometry = surface.geometry
            surface.fill_rect(0, 0, geometry.view_width, geometry.view_height, BLACK, BACKGROUND_ALPHA)
        
        # Lines first so the points are drawn on top
        self._draw_skeleton_lines(surface, keypoints)
        self._draw_keypoints(surface, keypoints, state.show_labels)
        
        if state.debug_mode:
            self._draw_debug_info(surface, keypoints)
    
    def _draw_no_keypoints(self, surface: RenderSurface):
        size = self.config.debug_text_size
        surface.draw_text(NO_DETECTION_LINES[0], 50, 100, WHITE, size)
        surface.draw_text(NO_DETECTION_LINES[1], 50, 150, WHITE, size)
    
    def _draw_skeleton_lines(self, surface: RenderSurface, keypoints: Sequence[Keypoint]):
        by_part = {}
        for keypoint in keypoints:
            by_part.setdefault(keypoint.body_part, keypoint)
        
        for first_part, second_part in SKELETON_EDGES:
            first = by_part.get(first_part)
            second = by_part.get(second_part)
            if first is None or second is None:
                continue
            
            style = edge_style(first, second, self.config.line_thickness)
            if style is None:
                continue
            
            surface.stroke_line(first.x, first.y, second.x, second.y, style.color, style.thickness)
    
    def _draw_keypoints(self, surface: RenderSurface, keypoints: Sequence[Keypoint], show_labels: bool):
        text_size = self.config.label_text_size
        
        for keypoint in keypoints:
            if keypoint.confidence <= LOW_CONFIDENCE:
                continue
            
            radius = marker_radius(keypoint.confidence, self.config.point_size)
            color = BODY_PART_COLORS.get(keypoint.body_part, WHITE)
            surface.fill_circle(keypoint.x, keypoint.y, radius, color)
            
            if show_labels:
                label_x = keypoint.x + radius + 5
                surface.draw_text(keypoint.name, label_x, keypoint.y, WHITE, text_size)
                surface.draw_text(
                    f"{int(keypoint.confidence * 100)}%",
                    label_x,
                    keypoint.y + text_size + 5,
                    WHITE,
                    text_size
                )
    
    def _draw_debug_info(self, surface: RenderSurface, keypoints: Sequence[Keypoint]):
        size = self.config.debug_text_size
        surface.fill_rect(10, 10, 350, 250, BLACK, BACKGROUND_ALPHA)
        
        counts = count_tiers(keypoints)
        lines = [
            f"Total keypoints: {len(keypoints)}",
            f"High confidence: {counts[ConfidenceTier.HIGH]}",
            f"Medium confidence: {counts[ConfidenceTier.MEDIUM]}",
            f"Low confidence: {counts[ConfidenceTier.LOW]}",
        ]
        
        # The nose is the landmark most likely visible in selfie framing
        nose = next((kp for kp in keypoints if kp.body_part is BodyPart.NOSE), None)
        if nose is not None:
            lines.append(f"Nose: {int(nose.confidence * 100)}%")
        
        y = 50
        for line in lines:
            surface.draw_text(line, 20, y, WHITE, size)
            y += 40


class OverlayView:
    """
    Render-context owner of the latest pose snapshot and overlay toggles.
    """
    
    def __init__(
        self,
        renderer: Optional[OverlayRenderer] = None,
        state: Optional[OverlayState] = None,
        on_redraw: Optional[Callable[[], None]] = None
    ):
        """
        Initialize overlay view.
        
        Args:
            renderer: Overlay renderer
            state: Initial presentation toggles
            on_redraw: Called whenever the overlay needs to be redrawn
        """
        self.renderer = renderer or OverlayRenderer()
        self.state = state or OverlayState.from_config(self.renderer.config)
        self.snapshot: Optional[PoseSnapshot] = None
        self.on_redraw = on_redraw
    
    def update_pose(self, snapshot: PoseSnapshot):
        """Replace the displayed pose and request a redraw."""
        self.snapshot = snapshot
        if logger.isEnabledFor(logging.DEBUG) and not snapshot.is_empty:
            high = sum(1 for kp in snapshot.keypoints if kp.confidence > HIGH_CONFIDENCE)
            logger.debug("High confidence keypoints: %d / %d", high, len(snapshot.keypoints))
        self._invalidate()
    
    def toggle_debug_mode(self):
        self.state = self.state.toggled_debug_mode()
        self._invalidate()
    
    def toggle_labels(self):
        self.state = self.state.toggled_labels()
        self._invalidate()
    
    def toggle_background(self):
        self.state = self.state.toggled_background()
        self._invalidate()
    
    def _invalidate(self):
        if self.on_redraw is not None:
            self.on_redraw()
    
    def mapped_keypoints(self, view: ViewGeometry) -> Tuple[Keypoint, ...]:
        """Current keypoints mapped into the given view."""
        snapshot = self.snapshot
        if snapshot is None or snapshot.is_empty:
            return ()
        return map_keypoints(snapshot.keypoints, snapshot.frame, view, snapshot.space)
    
    def render(self, surface: RenderSurface):
        """Draw the current overlay using the surface's current geometry."""
        keypoints = self.mapped_keypoints(surface.geometry)
        self.renderer.draw(surface, keypoints, self.state)
