"""
Pose model contracts, inference engines and output decoding.

Supported model families:
- MoveNet (direct keypoint regression)
- PoseNet (heatmap plus offset grids)
"""

from .base_model import (
    DecodeStrategy, InferenceEngine, ModelSpec, TensorSpec,
    MODEL_VARIANTS, get_model_spec, validate_engine
)
from .engines import OnnxEngine, TorchScriptEngine, create_engine
from .utils import DecodeResult, KeypointDecoder, decode_heatmap_offsets, decode_regression

__all__ = [
    'DecodeStrategy', 'InferenceEngine', 'ModelSpec', 'TensorSpec',
    'MODEL_VARIANTS', 'get_model_spec', 'validate_engine',
    'OnnxEngine', 'TorchScriptEngine', 'create_engine',
    'DecodeResult', 'KeypointDecoder', 'decode_heatmap_offsets', 'decode_regression'
]
