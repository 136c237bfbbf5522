"""
Inference engine adapters for ONNX Runtime and TorchScript models.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from .base_model import InferenceEngine, TensorSpec
from ..errors import InferenceUnavailable


logger = logging.getLogger(__name__)

# ONNX Runtime element types understood by the pipeline
_ONNX_DTYPES = {
    'tensor(float)': 'float32',
    'tensor(float16)': 'float16',
    'tensor(double)': 'float64',
    'tensor(uint8)': 'uint8',
    'tensor(int8)': 'int8',
    'tensor(int32)': 'int32',
    'tensor(int64)': 'int64',
}


def _onnx_spec(node) -> TensorSpec:
    shape = tuple(d if isinstance(d, int) else None for d in node.shape)
    dtype = _ONNX_DTYPES.get(node.type)
    if dtype is None:
        dtype = node.type
    return TensorSpec(shape, dtype)


class OnnxEngine(InferenceEngine):
    """Runs a pose model with ONNX Runtime."""
    
    def __init__(
        self,
        model_path: str,
        providers: Optional[Sequence[str]] = None,
        device: str = 'cpu'
    ):
        """
        Initialize ONNX Runtime engine.
        
        Args:
            model_path: Path to the .onnx model file
            providers: Execution providers in priority order
            device: Device hint used when no providers are given ('cpu', 'cuda')
        """
        try:
            import onnxruntime as ort
        except ImportError as e:
            raise InferenceUnavailable("ONNX Runtime not available") from e
        
        if not Path(model_path).exists():
            raise InferenceUnavailable(f"Model file not found: {model_path}")
        
        if providers is None:
            providers = ['CPUExecutionProvider']
            if device == 'cuda':
                providers = ['CUDAExecutionProvider', 'CPUExecutionProvider']
        
        session_options = ort.SessionOptions()
        session_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        
        try:
            self.session = ort.InferenceSession(
                str(model_path), sess_options=session_options, providers=list(providers)
            )
        except Exception as e:
            raise InferenceUnavailable(f"Could not load model {model_path}: {e}") from e
        
        self.model_path = str(model_path)
        self.input_name = self.session.get_inputs()[0].name
        self.output_names = [node.name for node in self.session.get_outputs()]
        self._lock = threading.Lock()
        
        logger.info("Loaded ONNX model %s with providers %s", model_path, list(providers))
    
    def infer(self, input_tensor: np.ndarray) -> List[np.ndarray]:
        with self._lock:
            if self.session is None:
                raise InferenceUnavailable("ONNX engine has been closed")
            session = self.session
        return list(session.run(self.output_names, {self.input_name: input_tensor}))
    
    def input_specs(self) -> Optional[List[TensorSpec]]:
        if self.session is None:
            raise InferenceUnavailable("ONNX engine has been closed")
        return [_onnx_spec(node) for node in self.session.get_inputs()]
    
    def output_specs(self) -> Optional[List[TensorSpec]]:
        if self.session is None:
            raise InferenceUnavailable("ONNX engine has been closed")
        return [_onnx_spec(node) for node in self.session.get_outputs()]
    
    def close(self):
        with self._lock:
            self.session = None
        logger.info("ONNX model %s closed", self.model_path)


class TorchScriptEngine(InferenceEngine):
    """Runs a TorchScript pose model with PyTorch."""
    
    def __init__(self, model_path: str, device: str = 'cpu'):
        """
        Initialize TorchScript engine.
        
        Args:
            model_path: Path to the scripted/traced model file
            device: Device to run inference on ('cpu', 'cuda')
        """
        try:
            import torch
        except ImportError as e:
            raise InferenceUnavailable("PyTorch not available") from e
        
        if not Path(model_path).exists():
            raise InferenceUnavailable(f"Model file not found: {model_path}")
        
        if device == 'cuda' and not torch.cuda.is_available():
            logger.warning("CUDA requested but not available, falling back to CPU")
            device = 'cpu'
        
        try:
            model = torch.jit.load(str(model_path), map_location=device)
        except Exception as e:
            raise InferenceUnavailable(f"Could not load model {model_path}: {e}") from e
        
        model.eval()
        self._torch = torch
        self.model = model
        self.device = device
        self.model_path = str(model_path)
        self._lock = threading.Lock()
        
        logger.info("Loaded TorchScript model %s on %s", model_path, device)
    
    def infer(self, input_tensor: np.ndarray) -> List[np.ndarray]:
        with self._lock:
            if self.model is None:
                raise InferenceUnavailable("TorchScript engine has been closed")
            model = self.model
        
        torch = self._torch
        input_tensor = torch.from_numpy(np.ascontiguousarray(input_tensor)).to(self.device)
        
        with torch.no_grad():
            output = model(input_tensor)
        
        if isinstance(output, dict):
            output = list(output.values())
        elif isinstance(output, torch.Tensor):
            output = [output]
        
        return [tensor.detach().cpu().numpy() for tensor in output]
    
    def close(self):
        with self._lock:
            self.model = None
        logger.info("TorchScript model %s closed", self.model_path)


def create_engine(
    engine_type: str,
    model_path: str,
    providers: Optional[Sequence[str]] = None,
    device: str = 'cpu'
) -> InferenceEngine:
    """Create an inference engine by type ('onnx', 'torch')."""
    if engine_type == 'onnx':
        return OnnxEngine(model_path, providers=providers, device=device)
    elif engine_type == 'torch':
        return TorchScriptEngine(model_path, device=device)
    else:
        raise ValueError(f"Unsupported engine type: {engine_type}")
