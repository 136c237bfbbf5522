"""
Inference engine boundary and per-variant model contracts.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..data.preprocessing import NormalizationMode
from ..data.types import NUM_KEYPOINTS
from ..errors import LiveposeError, ModelConfigurationError


logger = logging.getLogger(__name__)

# None marks a dimension the engine leaves symbolic (e.g. a dynamic batch)
Dim = Optional[int]


class DecodeStrategy(Enum):
    """How a model's raw outputs are turned into keypoints."""
    REGRESSION = 'regression'          # one [1, 17, 3] tensor of (y, x, score)
    HEATMAP_OFFSET = 'heatmap_offset'  # heatmap [H, W, 17] + offsets [H, W, 34]


@dataclass(frozen=True)
class TensorSpec:
    """Declared shape and dtype of a model input or output."""
    shape: Tuple[Dim, ...]
    dtype: str = 'float32'

    @property
    def size(self) -> int:
        return int(np.prod([d for d in self.shape if d is not None]))

    def matches(self, other: 'TensorSpec') -> bool:
        """Check compatibility, treating symbolic dimensions as wildcards."""
        if len(self.shape) != len(other.shape):
            return False
        if np.dtype(self.dtype) != np.dtype(other.dtype):
            return False
        return all(
            a is None or b is None or a == b
            for a, b in zip(self.shape, other.shape)
        )

    def __str__(self):
        dims = 'x'.join('?' if d is None else str(d) for d in self.shape)
        return f"{dims} {self.dtype}"


@dataclass(frozen=True)
class ModelSpec:
    """Input/output contract of one model variant."""
    name: str
    strategy: DecodeStrategy
    input: TensorSpec
    outputs: Tuple[TensorSpec, ...]

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        """Input shape as (height, width, channels), without the batch dim."""
        return tuple(int(d) for d in self.input.shape[-3:])

    @property
    def normalization(self) -> NormalizationMode:
        if np.dtype(self.input.dtype) == np.uint8:
            return NormalizationMode.UINT8
        return NormalizationMode.FLOAT32

    @property
    def grid_shape(self) -> Optional[Tuple[int, int]]:
        """Heatmap grid size (rows, cols) for heatmap models."""
        if self.strategy is not DecodeStrategy.HEATMAP_OFFSET:
            return None
        return int(self.outputs[0].shape[-3]), int(self.outputs[0].shape[-2])


MODEL_VARIANTS: Dict[str, ModelSpec] = {
    'movenet_lightning': ModelSpec(
        name='movenet_lightning',
        strategy=DecodeStrategy.REGRESSION,
        input=TensorSpec((1, 192, 192, 3), 'float32'),
        outputs=(TensorSpec((1, NUM_KEYPOINTS, 3), 'float32'),),
    ),
    'movenet_thunder': ModelSpec(
        name='movenet_thunder',
        strategy=DecodeStrategy.REGRESSION,
        input=TensorSpec((1, 256, 256, 3), 'uint8'),
        outputs=(TensorSpec((1, NUM_KEYPOINTS, 3), 'float32'),),
    ),
    'posenet': ModelSpec(
        name='posenet',
        strategy=DecodeStrategy.HEATMAP_OFFSET,
        input=TensorSpec((1, 257, 257, 3), 'float32'),
        outputs=(
            TensorSpec((1, 9, 9, NUM_KEYPOINTS), 'float32'),
            TensorSpec((1, 9, 9, 2 * NUM_KEYPOINTS), 'float32'),
        ),
    ),
}


def get_model_spec(variant: Union[str, ModelSpec]) -> ModelSpec:
    """Resolve a model variant name to its contract."""
    if isinstance(variant, ModelSpec):
        return variant
    try:
        return MODEL_VARIANTS[variant.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported model variant: {variant} "
            f"(choose from {', '.join(sorted(MODEL_VARIANTS))})"
        ) from None


class InferenceEngine(ABC):
    """Base class for inference runtimes executing a pose model."""
    
    @abstractmethod
    def infer(self, input_tensor: np.ndarray) -> List[np.ndarray]:
        """
        Run a forward pass.
        
        Args:
            input_tensor: Input tensor shaped as the model declares
        
        Returns:
            List of output tensors in model output order
        """
        pass
    
    def input_specs(self) -> Optional[List[TensorSpec]]:
        """Declared inputs, or None when the runtime cannot introspect them."""
        return None
    
    def output_specs(self) -> Optional[List[TensorSpec]]:
        """Declared outputs, or None when the runtime cannot introspect them."""
        return None
    
    def close(self):
        """Release runtime resources."""
        pass
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


def _check_specs(kind: str, declared: Sequence[TensorSpec], expected: Sequence[TensorSpec]):
    if len(declared) != len(expected):
        raise ModelConfigurationError(
            f"Model declares {len(declared)} {kind}(s), expected {len(expected)}"
        )
    for index, (got, want) in enumerate(zip(declared, expected)):
        if not got.matches(want):
            raise ModelConfigurationError(
                f"Model {kind} {index} is {got}, expected {want}"
            )


def validate_engine(engine: InferenceEngine, spec: ModelSpec, dry_run: bool = True):
    """
    Check once, at startup, that an engine honours a variant's contract.
    
    Args:
        engine: Loaded inference engine
        spec: Expected model contract
        dry_run: Whether to run one forward pass on a zero tensor
    
    Raises:
        ModelConfigurationError: If declared or observed shapes differ, or the
            model fails on the zero-tensor dry run
    """
    declared_inputs = engine.input_specs()
    if declared_inputs is not None:
        _check_specs('input', declared_inputs, [spec.input])
    
    declared_outputs = engine.output_specs()
    if declared_outputs is not None:
        _check_specs('output', declared_outputs, spec.outputs)
    
    if dry_run:
        input_shape = tuple(1 if d is None else d for d in spec.input.shape)
        try:
            outputs = engine.infer(np.zeros(input_shape, dtype=np.dtype(spec.input.dtype)))
        except LiveposeError:
            raise
        except Exception as e:
            raise ModelConfigurationError(
                f"Model rejected a {spec.input} input for {spec.name}: {e}"
            ) from e
        observed = [
            TensorSpec(tuple(np.shape(output)), str(np.asarray(output).dtype))
            for output in outputs
        ]
        _check_specs('output', observed, spec.outputs)
    
    logger.info("Model matches %s contract: input %s", spec.name, spec.input)
