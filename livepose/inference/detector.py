"""
Pose detection for single frames: encode, infer, decode.
"""

import logging
import time
from typing import Dict, List, Optional, Union

import numpy as np

from ..data.preprocessing import TensorEncoder
from ..data.types import CameraFrame, FrameContext, PoseSnapshot
from ..errors import EncodingError, InferenceUnavailable
from ..models.base_model import InferenceEngine, ModelSpec, get_model_spec, validate_engine
from ..models.engines import create_engine
from ..models.utils import KeypointDecoder


logger = logging.getLogger(__name__)


class PoseDetector:
    """Runs the single-person pose pipeline on one frame at a time."""
    
    def __init__(
        self,
        engine: Optional[InferenceEngine] = None,
        model_variant: Union[str, ModelSpec] = 'movenet_lightning',
        model_path: Optional[str] = None,
        engine_type: str = 'onnx',
        providers: Optional[List[str]] = None,
        device: str = 'cpu',
        validate: bool = True
    ):
        """
        Initialize pose detector.
        
        Args:
            engine: Loaded inference engine; created from model_path if None
            model_variant: Model variant name or contract
            model_path: Path to model weights (when no engine is given)
            engine_type: Engine to create from model_path ('onnx', 'torch')
            providers: ONNX Runtime execution providers
            device: Device to run inference on ('cpu', 'cuda')
            validate: Whether to check the engine against the variant contract
        
        Raises:
            ModelConfigurationError: If the model does not match the variant
            InferenceUnavailable: If the model cannot be loaded
        """
        self.spec = get_model_spec(model_variant)
        
        if engine is None:
            if model_path is None:
                raise ValueError("Either an engine or a model_path is required")
            engine = create_engine(engine_type, model_path, providers=providers, device=device)
        self.engine = engine
        
        if validate:
            validate_engine(self.engine, self.spec)
        
        self.encoder = TensorEncoder(self.spec.input_shape, self.spec.normalization)
        self.decoder = KeypointDecoder(self.spec.strategy, self.spec.grid_shape)
        
        # Performance tracking
        self.inference_times = []
        self.failed_frames = 0
        self._closed = False
    
    def _input_tensor(self, buffer: np.ndarray) -> np.ndarray:
        shape = tuple(1 if d is None else d for d in self.spec.input.shape)
        return buffer.reshape(shape)
    
    def _run(self, buffer: np.ndarray, context: FrameContext, timestamp_ms: float) -> PoseSnapshot:
        if self._closed:
            raise InferenceUnavailable("Pose detector has been closed")
        
        start_time = time.time()
        outputs = self.engine.infer(self._input_tensor(buffer))
        inference_time = time.time() - start_time
        
        self.inference_times.append(inference_time)
        if len(self.inference_times) > 100:
            self.inference_times.pop(0)
        
        result = self.decoder.decode(outputs, context)
        if not result.ok:
            self.failed_frames += 1
        
        logger.debug("Inference time: %.1f ms", inference_time * 1000)
        
        return PoseSnapshot(
            keypoints=result.keypoints,
            frame=context,
            space=result.space,
            timestamp_ms=timestamp_ms,
            error=result.error
        )
    
    def detect_frame(self, frame: CameraFrame) -> PoseSnapshot:
        """
        Detect the pose in a camera frame.
        
        Per-frame failures (encoding or decoding) produce an empty snapshot
        carrying the error. The frame is not released.
        
        Args:
            frame: Camera frame
        
        Returns:
            Immutable pose snapshot
        
        Raises:
            InferenceUnavailable: If the engine is not usable anymore
        """
        try:
            buffer, context = self.encoder.encode_frame(frame)
        except EncodingError as e:
            self.failed_frames += 1
            logger.warning("Skipping frame %r: %s", frame, e)
            return PoseSnapshot.empty(frame.context, frame.timestamp_ms, error=e)
        
        return self._run(buffer, context, frame.timestamp_ms)
    
    def detect_image(
        self,
        image: np.ndarray,
        rotation_degrees: int = 0,
        timestamp_ms: float = 0.0
    ) -> PoseSnapshot:
        """
        Detect the pose in an RGB image.
        
        Args:
            image: RGB image [H, W, 3]
            rotation_degrees: Clockwise rotation applied before inference
            timestamp_ms: Timestamp recorded in the snapshot
        
        Returns:
            Immutable pose snapshot
        """
        height, width = image.shape[:2] if image is not None and image.ndim >= 2 else (0, 0)
        frame = CameraFrame(image, width, height, rotation_degrees, timestamp_ms)
        return self.detect_frame(frame)
    
    def get_performance_stats(self) -> Dict[str, float]:
        """Get performance statistics."""
        if not self.inference_times:
            return {}
        
        return {
            'avg_inference_time': float(np.mean(self.inference_times)),
            'min_inference_time': float(np.min(self.inference_times)),
            'max_inference_time': float(np.max(self.inference_times)),
            'std_inference_time': float(np.std(self.inference_times)),
            'fps': 1.0 / np.mean(self.inference_times) if np.mean(self.inference_times) > 0 else 0.0,
            'failed_frames': self.failed_frames
        }
    
    def reset_performance_stats(self):
        """Reset performance statistics."""
        self.inference_times = []
        self.failed_frames = 0
    
    def close(self):
        """Release the inference engine."""
        if self._closed:
            return
        self._closed = True
        try:
            self.engine.close()
        except Exception:
            logger.exception("Error closing model")
