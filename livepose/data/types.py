"""
Core data types for single-person pose estimation.

Keypoints, frame geometry and the skeleton definition shared by the decoder,
the coordinate mapper and the overlay renderer.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Callable, Optional, Tuple

from ..errors import LiveposeError


NUM_KEYPOINTS = 17


class BodyPart(IntEnum):
    """COCO body parts with the ordinal used as the model output channel."""
    NOSE = 0
    LEFT_EYE = 1
    RIGHT_EYE = 2
    LEFT_EAR = 3
    RIGHT_EAR = 4
    LEFT_SHOULDER = 5
    RIGHT_SHOULDER = 6
    LEFT_ELBOW = 7
    RIGHT_ELBOW = 8
    LEFT_WRIST = 9
    RIGHT_WRIST = 10
    LEFT_HIP = 11
    RIGHT_HIP = 12
    LEFT_KNEE = 13
    RIGHT_KNEE = 14
    LEFT_ANKLE = 15
    RIGHT_ANKLE = 16


# Output channel k of the model belongs to KEYPOINT_CHANNEL_ORDER[k].
KEYPOINT_CHANNEL_ORDER: Tuple[BodyPart, ...] = (
    BodyPart.NOSE,
    BodyPart.LEFT_EYE,
    BodyPart.RIGHT_EYE,
    BodyPart.LEFT_EAR,
    BodyPart.RIGHT_EAR,
    BodyPart.LEFT_SHOULDER,
    BodyPart.RIGHT_SHOULDER,
    BodyPart.LEFT_ELBOW,
    BodyPart.RIGHT_ELBOW,
    BodyPart.LEFT_WRIST,
    BodyPart.RIGHT_WRIST,
    BodyPart.LEFT_HIP,
    BodyPart.RIGHT_HIP,
    BodyPart.LEFT_KNEE,
    BodyPart.RIGHT_KNEE,
    BodyPart.LEFT_ANKLE,
    BodyPart.RIGHT_ANKLE,
)

if (len(KEYPOINT_CHANNEL_ORDER) != NUM_KEYPOINTS
        or any(part.value != channel for channel, part in enumerate(KEYPOINT_CHANNEL_ORDER))):
    raise RuntimeError("KEYPOINT_CHANNEL_ORDER does not match the BodyPart ordinals")

# Connections between keypoints to form a skeleton
SKELETON_EDGES: Tuple[Tuple[BodyPart, BodyPart], ...] = (
    (BodyPart.NOSE, BodyPart.LEFT_EYE),
    (BodyPart.NOSE, BodyPart.RIGHT_EYE),
    (BodyPart.LEFT_EYE, BodyPart.LEFT_EAR),
    (BodyPart.RIGHT_EYE, BodyPart.RIGHT_EAR),
    (BodyPart.NOSE, BodyPart.LEFT_SHOULDER),
    (BodyPart.NOSE, BodyPart.RIGHT_SHOULDER),
    (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_ELBOW),
    (BodyPart.LEFT_ELBOW, BodyPart.LEFT_WRIST),
    (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_ELBOW),
    (BodyPart.RIGHT_ELBOW, BodyPart.RIGHT_WRIST),
    (BodyPart.LEFT_SHOULDER, BodyPart.RIGHT_SHOULDER),
    (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_HIP),
    (BodyPart.RIGHT_SHOULDER, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP),
    (BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE),
    (BodyPart.LEFT_KNEE, BodyPart.LEFT_ANKLE),
    (BodyPart.RIGHT_HIP, BodyPart.RIGHT_KNEE),
    (BodyPart.RIGHT_KNEE, BodyPart.RIGHT_ANKLE),
)


def body_part_for_channel(channel: int) -> BodyPart:
    """
    Look up the body part bound to a model output channel.

    Args:
        channel: Output channel index (0-16)

    Returns:
        The body part for that channel
    """
    if not 0 <= channel < len(KEYPOINT_CHANNEL_ORDER):
        raise IndexError(f"No body part bound to channel {channel}")
    return KEYPOINT_CHANNEL_ORDER[channel]


class CoordinateSpace(Enum):
    """Coordinate space of decoded keypoint positions."""
    PIXEL = 'pixel'
    NORMALIZED = 'normalized'


@dataclass(frozen=True)
class Keypoint:
    """A single estimated body joint."""
    body_part: BodyPart
    position: Tuple[float, float]
    confidence: float

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    @property
    def name(self) -> str:
        return self.body_part.name

    def with_position(self, x: float, y: float) -> 'Keypoint':
        """Return a copy of this keypoint moved to (x, y)."""
        return replace(self, position=(float(x), float(y)))


@dataclass(frozen=True)
class FrameContext:
    """Geometry of the frame a keypoint set was decoded from."""
    source_width: int
    source_height: int
    rotation_degrees: int = 0


@dataclass(frozen=True)
class ViewGeometry:
    """Size of the destination drawing surface."""
    view_width: float
    view_height: float


@dataclass(frozen=True)
class PoseSnapshot:
    """
    Immutable result of one processed frame, handed from the worker to the
    render context.
    """
    keypoints: Tuple[Keypoint, ...]
    frame: FrameContext
    space: CoordinateSpace = CoordinateSpace.PIXEL
    timestamp_ms: float = 0.0
    error: Optional[LiveposeError] = field(default=None, compare=False)

    @property
    def is_empty(self) -> bool:
        return len(self.keypoints) == 0

    @classmethod
    def empty(
        cls,
        frame: FrameContext,
        timestamp_ms: float = 0.0,
        error: Optional[LiveposeError] = None
    ) -> 'PoseSnapshot':
        return cls(keypoints=(), frame=frame, timestamp_ms=timestamp_ms, error=error)


class CameraFrame:
    """
    A raw frame delivered by a frame source.

    The frame owns its pixel buffer until ``release()`` is called; the
    release callback supplied by the source runs at most once.
    """

    PIXEL_FORMATS = ('rgb', 'bgr', 'nv21')

    def __init__(
        self,
        pixels,
        width: int,
        height: int,
        rotation_degrees: int = 0,
        timestamp_ms: float = 0.0,
        pixel_format: str = 'rgb',
        on_release: Optional[Callable[['CameraFrame'], None]] = None
    ):
        """
        Initialize a camera frame.

        Args:
            pixels: Pixel data (numpy array or bytes-like)
            width: Frame width in pixels
            height: Frame height in pixels
            rotation_degrees: Clockwise rotation needed to display the frame upright
            timestamp_ms: Arrival timestamp in milliseconds
            pixel_format: One of 'rgb', 'bgr', 'nv21'
            on_release: Callback invoked once when the frame is released
        """
        if pixel_format not in self.PIXEL_FORMATS:
            raise ValueError(f"Unsupported pixel format: {pixel_format}")

        self.pixels = pixels
        self.width = int(width)
        self.height = int(height)
        self.rotation_degrees = int(rotation_degrees)
        self.timestamp_ms = timestamp_ms
        self.pixel_format = pixel_format
        self._on_release = on_release
        self._released = False

    @property
    def context(self) -> FrameContext:
        return FrameContext(self.width, self.height, self.rotation_degrees)

    @property
    def released(self) -> bool:
        return self._released

    def release(self):
        """Release the frame back to its source."""
        if self._released:
            return
        self._released = True
        self.pixels = None
        if self._on_release is not None:
            self._on_release(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False

    def __repr__(self):
        return (
            f"CameraFrame({self.width}x{self.height}, format={self.pixel_format}, "
            f"rotation={self.rotation_degrees}, t={self.timestamp_ms})"
        )
