"""
Frame preprocessing for pose model input.

Converts camera frames of arbitrary resolution into the fixed-shape,
fixed-normalization input buffer a pose model declares.
"""

import logging
from enum import Enum
from typing import Tuple

import cv2
import numpy as np

from .types import CameraFrame, FrameContext
from ..errors import EncodingError


logger = logging.getLogger(__name__)

_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class NormalizationMode(Enum):
    """Channel value encoding expected by the model input."""
    UINT8 = 'uint8'      # 0-255
    FLOAT32 = 'float32'  # 0-1

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.uint8) if self is NormalizationMode.UINT8 else np.dtype(np.float32)


def _normalize_rotation(rotation_degrees: int) -> int:
    rotation = int(rotation_degrees) % 360
    if rotation not in _ROTATIONS:
        raise EncodingError(f"Unsupported rotation: {rotation_degrees} degrees")
    return rotation


def rotated_context(context: FrameContext) -> FrameContext:
    """
    Describe the frame after its rotation correction has been applied.

    Args:
        context: Geometry of the frame as delivered by the camera

    Returns:
        Geometry of the upright frame (rotation already applied)
    """
    rotation = _normalize_rotation(context.rotation_degrees)
    if rotation in (90, 270):
        return FrameContext(context.source_height, context.source_width, rotation)
    return FrameContext(context.source_width, context.source_height, rotation)


def _as_byte_array(pixels) -> np.ndarray:
    if isinstance(pixels, np.ndarray):
        return pixels.reshape(-1)
    return np.frombuffer(pixels, dtype=np.uint8)


def frame_to_rgb(frame: CameraFrame) -> np.ndarray:
    """
    Convert a camera frame to an RGB image without rotation.

    Args:
        frame: Camera frame in 'rgb', 'bgr' or 'nv21' format

    Returns:
        RGB image [H, W, 3] (uint8)
    """
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        raise EncodingError(f"Frame has empty geometry: {width}x{height}")
    if frame.pixels is None:
        raise EncodingError("Frame has already been released")

    if frame.pixel_format == 'nv21':
        if width % 2 or height % 2:
            raise EncodingError(f"NV21 frames need even dimensions, got {width}x{height}")
        expected = width * height * 3 // 2
        data = _as_byte_array(frame.pixels)
        if data.size != expected:
            raise EncodingError(
                f"NV21 buffer holds {data.size} bytes, expected {expected} for {width}x{height}"
            )
        yuv = data.astype(np.uint8, copy=False).reshape(height * 3 // 2, width)
        return cv2.cvtColor(yuv, cv2.COLOR_YUV2RGB_NV21)

    if isinstance(frame.pixels, np.ndarray):
        image = frame.pixels
        if image.shape != (height, width, 3):
            raise EncodingError(
                f"Pixel array shape {image.shape} does not match declared {height}x{width}x3"
            )
    else:
        data = _as_byte_array(frame.pixels)
        expected = width * height * 3
        if data.size != expected:
            raise EncodingError(
                f"Pixel buffer holds {data.size} bytes, expected {expected} for {width}x{height}"
            )
        image = data.reshape(height, width, 3)

    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    if frame.pixel_format == 'bgr':
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return image


def rotate_image(image: np.ndarray, rotation_degrees: int) -> np.ndarray:
    """Rotate an image clockwise by a multiple of 90 degrees."""
    code = _ROTATIONS[_normalize_rotation(rotation_degrees)]
    if code is None:
        return image
    return cv2.rotate(image, code)


class TensorEncoder:
    """Encodes RGB images into a model input buffer."""
    
    def __init__(
        self,
        input_shape: Tuple[int, int, int] = (192, 192, 3),
        mode: NormalizationMode = NormalizationMode.FLOAT32
    ):
        """
        Initialize tensor encoder.
        
        Args:
            input_shape: Model input shape (height, width, channels)
            mode: Channel value normalization
        """
        if len(input_shape) != 3 or min(input_shape) <= 0:
            raise ValueError(f"Invalid input shape: {input_shape}")
        if input_shape[2] not in (1, 3):
            raise ValueError(f"Unsupported channel count: {input_shape[2]}")

        self.input_shape = tuple(int(d) for d in input_shape)
        self.mode = NormalizationMode(mode)
    
    @property
    def size(self) -> int:
        """Number of elements in an encoded buffer."""
        height, width, channels = self.input_shape
        return height * width * channels
    
    def rotate_image(self, image: np.ndarray, rotation_degrees: int) -> np.ndarray:
        """Rotate image clockwise by a multiple of 90 degrees."""
        return rotate_image(image, rotation_degrees)
    
    def resize_image(self, image: np.ndarray) -> np.ndarray:
        """Resize image to the input size with bilinear interpolation."""
        height, width = self.input_shape[:2]
        return cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR)
    
    def normalize_image(self, image: np.ndarray) -> np.ndarray:
        """Convert channel values to the declared normalization."""
        if self.mode is NormalizationMode.UINT8:
            return image.astype(np.uint8, copy=False)
        return image.astype(np.float32) / 255.0
    
    def encode(self, image: np.ndarray, rotation_degrees: int = 0) -> np.ndarray:
        """
        Complete encoding pipeline for an RGB image.
        
        Args:
            image: RGB image [H, W, 3] (uint8)
            rotation_degrees: Clockwise rotation applied before resizing
        
        Returns:
            Flat buffer of H*W*C elements, row-major and channel-interleaved
        """
        if image is None or image.ndim != 3 or image.shape[0] == 0 or image.shape[1] == 0:
            shape = None if image is None else image.shape
            raise EncodingError(f"Cannot encode empty image with shape {shape}")
        if image.shape[2] != 3:
            raise EncodingError(f"Expected 3 colour channels, got {image.shape[2]}")

        image = self.rotate_image(image, rotation_degrees)
        image = self.resize_image(image)
        
        if self.input_shape[2] == 1:
            image = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)[:, :, np.newaxis]
        
        buffer = self.normalize_image(np.ascontiguousarray(image)).reshape(-1)
        
        if buffer.size != self.size:
            raise EncodingError(f"Encoded {buffer.size} elements, expected {self.size}")
        
        return buffer
    
    def encode_frame(self, frame: CameraFrame) -> Tuple[np.ndarray, FrameContext]:
        """
        Encode a camera frame.
        
        Args:
            frame: Camera frame
        
        Returns:
            Tuple of the encoded buffer and the upright frame geometry
        """
        context = rotated_context(frame.context)
        image = frame_to_rgb(frame)
        buffer = self.encode(image, frame.rotation_degrees)
        
        logger.debug(
            "Encoded %dx%d frame (rotation %d) into %s buffer",
            frame.width, frame.height, context.rotation_degrees, self.input_shape
        )
        return buffer, context
