"""
Decoding of raw pose model outputs into labeled keypoints.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .base_model import DecodeStrategy
from ..data.types import (
    NUM_KEYPOINTS,
    CoordinateSpace,
    FrameContext,
    Keypoint,
    body_part_for_channel,
)
from ..errors import DecodeError


logger = logging.getLogger(__name__)

# Minimum heatmap peak for a keypoint to be emitted by the heatmap decoder
HEATMAP_THRESHOLD = 0.3

# Confidence above which a keypoint counts as high confidence in summaries
HIGH_CONFIDENCE_SUMMARY = 0.7


def _as_float_array(output, name: str) -> np.ndarray:
    try:
        array = np.asarray(output, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"{name} is not a numeric buffer: {e}") from e
    return array


def decode_regression(
    output,
    image_width: float,
    image_height: float
) -> List[Keypoint]:
    """
    Decode a direct-regression output of (y, x, score) triplets.
    
    Every keypoint is emitted regardless of its score.
    
    Args:
        output: Output tensor [1, 17, 3] or any buffer of 17 * 3 values
        image_width: Width of the image the keypoints refer to
        image_height: Height of the image the keypoints refer to
    
    Returns:
        17 keypoints in pixel coordinates, in channel order
    """
    values = _as_float_array(output, 'Regression output').reshape(-1)
    
    if values.size != NUM_KEYPOINTS * 3:
        raise DecodeError(
            f"Unexpected output size: {values.size}, expected: {NUM_KEYPOINTS * 3}"
        )
    
    keypoints = []
    for i in range(NUM_KEYPOINTS):
        y = float(values[i * 3]) * image_height
        x = float(values[i * 3 + 1]) * image_width
        confidence = float(values[i * 3 + 2])
        keypoints.append(Keypoint(body_part_for_channel(i), (x, y), confidence))
    
    return keypoints


def _grid_view(buffer, name: str, channels: int, grid_shape: Optional[Tuple[int, int]]) -> np.ndarray:
    array = _as_float_array(buffer, name)
    
    if grid_shape is not None:
        rows, cols = grid_shape
        expected = rows * cols * channels
        if array.size != expected:
            raise DecodeError(
                f"{name} holds {array.size} values, expected {expected} "
                f"for a {rows}x{cols}x{channels} grid"
            )
        return array.reshape(rows, cols, channels)
    
    # Drop a leading batch dimension of 1
    while array.ndim > 3 and array.shape[0] == 1:
        array = array[0]
    
    if array.ndim != 3 or array.shape[2] != channels or array.shape[0] == 0 or array.shape[1] == 0:
        raise DecodeError(f"{name} has shape {array.shape}, expected [rows, cols, {channels}]")
    
    return array


def decode_heatmap_offsets(
    heatmap,
    offsets,
    grid_shape: Optional[Tuple[int, int]] = None,
    threshold: float = HEATMAP_THRESHOLD
) -> List[Keypoint]:
    """
    Decode a heatmap + offset output into normalized keypoints.
    
    For each channel the grid cell with the highest heatmap value is selected
    (first cell in row-major order on ties) and refined by its offsets.
    Channels whose peak is below the threshold are omitted.
    
    Args:
        heatmap: Heatmap [rows, cols, 17], optionally with a batch dim of 1
        offsets: Offset map [rows, cols, 34]; x offsets first, then y offsets
        grid_shape: (rows, cols) used to reshape flat buffers
        threshold: Minimum peak value for a keypoint to be emitted
    
    Returns:
        Keypoints with positions normalized to [0, 1]
    """
    heatmap = _grid_view(heatmap, 'Heatmap', NUM_KEYPOINTS, grid_shape)
    if grid_shape is None:
        grid_shape = heatmap.shape[:2]
    offsets = _grid_view(offsets, 'Offset map', 2 * NUM_KEYPOINTS, grid_shape)
    
    if offsets.shape[:2] != heatmap.shape[:2]:
        raise DecodeError(
            f"Offset grid {offsets.shape[:2]} does not match heatmap grid {heatmap.shape[:2]}"
        )
    
    rows, cols = heatmap.shape[:2]
    keypoints = []
    
    for k in range(NUM_KEYPOINTS):
        # NaN cells never win; argmax returns the first maximum in row-major order
        channel = heatmap[:, :, k]
        channel = np.where(np.isnan(channel), -np.inf, channel)
        flat_index = int(np.argmax(channel))
        row, col = divmod(flat_index, cols)
        score = float(channel[row, col])
        
        if not score >= threshold:
            continue
        
        offset_x = float(offsets[row, col, k])
        offset_y = float(offsets[row, col, k + NUM_KEYPOINTS])
        
        x = (col + offset_x) / cols
        y = (row + offset_y) / rows
        keypoints.append(Keypoint(body_part_for_channel(k), (x, y), score))
    
    return keypoints


def summarize_keypoints(keypoints: Sequence[Keypoint]) -> dict:
    """Confidence statistics of a keypoint set."""
    if not keypoints:
        return {'count': 0, 'min_confidence': 0.0, 'max_confidence': 0.0,
                'avg_confidence': 0.0, 'high_confidence': 0}
    
    scores = np.array([kp.confidence for kp in keypoints], dtype=np.float32)
    return {
        'count': len(keypoints),
        'min_confidence': float(scores.min()),
        'max_confidence': float(scores.max()),
        'avg_confidence': float(scores.mean()),
        'high_confidence': int(np.sum(scores > HIGH_CONFIDENCE_SUMMARY)),
    }


@dataclass(frozen=True)
class DecodeResult:
    """Keypoints decoded from one frame, or the error that prevented it."""
    keypoints: Tuple[Keypoint, ...]
    space: CoordinateSpace
    error: Optional[DecodeError] = None
    
    @property
    def ok(self) -> bool:
        return self.error is None


class KeypointDecoder:
    """Decodes model outputs with a strategy fixed at construction."""
    
    def __init__(
        self,
        strategy: DecodeStrategy,
        grid_shape: Optional[Tuple[int, int]] = None,
        threshold: float = HEATMAP_THRESHOLD
    ):
        """
        Initialize keypoint decoder.
        
        Args:
            strategy: Decoding strategy of the loaded model
            grid_shape: Heatmap grid (rows, cols) for heatmap models
            threshold: Heatmap acceptance threshold
        """
        self.strategy = DecodeStrategy(strategy)
        self.grid_shape = grid_shape
        self.threshold = threshold
    
    @property
    def space(self) -> CoordinateSpace:
        if self.strategy is DecodeStrategy.REGRESSION:
            return CoordinateSpace.PIXEL
        return CoordinateSpace.NORMALIZED
    
    def decode(self, outputs: Sequence, context: FrameContext) -> DecodeResult:
        """
        Decode the outputs of one forward pass.
        
        Malformed outputs never raise; they produce an empty result carrying
        the DecodeError.
        
        Args:
            outputs: Output tensors in model output order
            context: Geometry of the (upright) frame that was encoded
        
        Returns:
            Decode result
        """
        try:
            keypoints = self._decode(outputs, context)
        except DecodeError as e:
            logger.warning("Dropping frame with malformed model output: %s", e)
            return DecodeResult(keypoints=(), space=self.space, error=e)
        
        if logger.isEnabledFor(logging.DEBUG):
            stats = summarize_keypoints(keypoints)
            logger.debug(
                "Decoded %d keypoints, confidence %.2f to %.2f, average %.2f, high confidence %d",
                stats['count'], stats['min_confidence'], stats['max_confidence'],
                stats['avg_confidence'], stats['high_confidence']
            )
        
        return DecodeResult(keypoints=tuple(keypoints), space=self.space)
    
    def _decode(self, outputs: Sequence, context: FrameContext) -> List[Keypoint]:
        if self.strategy is DecodeStrategy.REGRESSION:
            if len(outputs) < 1:
                raise DecodeError("Model returned no output tensors")
            return decode_regression(outputs[0], context.source_width, context.source_height)
        
        if len(outputs) < 2:
            raise DecodeError(
                f"Heatmap decoding needs heatmap and offset tensors, got {len(outputs)}"
            )
        return decode_heatmap_offsets(outputs[0], outputs[1], self.grid_shape, self.threshold)
