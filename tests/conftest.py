"""
Shared fixtures: in-memory inference engines and a recording render surface.
"""

from typing import List, Optional, Sequence

import numpy as np
import pytest

from livepose.data.types import NUM_KEYPOINTS, CameraFrame, ViewGeometry
from livepose.inference.overlay import RenderSurface
from livepose.models.base_model import InferenceEngine, TensorSpec


class FakeEngine(InferenceEngine):
    """Returns fixed outputs and records every input it receives."""
    
    def __init__(
        self,
        outputs: Sequence[np.ndarray],
        inputs_declared: Optional[List[TensorSpec]] = None,
        outputs_declared: Optional[List[TensorSpec]] = None,
        error: Optional[Exception] = None
    ):
        self.outputs = [np.asarray(o) for o in outputs]
        self.inputs_declared = inputs_declared
        self.outputs_declared = outputs_declared
        self.error = error
        self.received = []
        self.closed = False
    
    def infer(self, input_tensor):
        self.received.append(input_tensor)
        if self.error is not None:
            raise self.error
        return list(self.outputs)
    
    def input_specs(self):
        return self.inputs_declared
    
    def output_specs(self):
        return self.outputs_declared
    
    def close(self):
        self.closed = True


def regression_output(confidence: float = 0.8) -> np.ndarray:
    """A [1, 17, 3] output where keypoint i sits at y=0.1+0.04i, x=0.5."""
    output = np.zeros((1, NUM_KEYPOINTS, 3), dtype=np.float32)
    for i in range(NUM_KEYPOINTS):
        output[0, i] = (0.1 + 0.04 * i, 0.5, confidence)
    return output


class RecordingSurface(RenderSurface):
    """Records draw calls instead of drawing."""
    
    def __init__(self, width: float = 640, height: float = 480):
        self.view = ViewGeometry(width, height)
        self.calls = []
    
    @property
    def geometry(self):
        return self.view
    
    def fill_circle(self, x, y, radius, color):
        self.calls.append(('circle', x, y, radius, color))
    
    def stroke_line(self, x1, y1, x2, y2, color, thickness):
        self.calls.append(('line', x1, y1, x2, y2, color, thickness))
    
    def draw_text(self, text, x, y, color, size):
        self.calls.append(('text', text, x, y, color, size))
    
    def fill_rect(self, x0, y0, x1, y1, color, alpha=1.0):
        self.calls.append(('rect', x0, y0, x1, y1, color, alpha))
    
    def of_kind(self, kind):
        return [call for call in self.calls if call[0] == kind]
    
    def texts(self):
        return [call[1] for call in self.of_kind('text')]


@pytest.fixture
def lightning_engine():
    return FakeEngine([regression_output()])


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def make_frame():
    """Factory for RGB camera frames that count their releases."""
    released = []
    
    def factory(width=64, height=48, timestamp_ms=0.0, rotation_degrees=0):
        pixels = np.full((height, width, 3), 128, dtype=np.uint8)
        return CameraFrame(
            pixels, width, height,
            rotation_degrees=rotation_degrees,
            timestamp_ms=timestamp_ms,
            on_release=released.append
        )
    
    factory.released = released
    return factory
