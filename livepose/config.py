"""
Configuration for the real-time pose pipeline.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass
class GateConfig:
    """Configuration for frame rate limiting."""
    policy: str = 'time'  # 'time', 'count'
    interval_ms: float = 100.0
    every_n: int = 5

    def __post_init__(self):
        if self.policy not in ('time', 'count'):
            raise ValueError(f"Unsupported gate policy: {self.policy}")
        if self.interval_ms < 0:
            raise ValueError("interval_ms must be non-negative")
        if self.every_n < 1:
            raise ValueError("every_n must be at least 1")


@dataclass
class OverlayConfig:
    """Appearance settings for the skeleton overlay."""
    point_size: float = 30.0
    line_thickness: float = 10.0
    label_text_size: float = 40.0
    debug_text_size: float = 30.0
    debug_mode: bool = True
    show_labels: bool = True
    draw_background: bool = False


@dataclass
class PipelineConfig:
    """Top-level configuration for the live pose pipeline."""
    model_variant: str = 'movenet_lightning'
    model_path: Optional[str] = None
    engine: str = 'onnx'  # 'onnx', 'torch'
    providers: List[str] = field(default_factory=lambda: ['CPUExecutionProvider'])
    device: str = 'cpu'
    camera_id: int = 0
    resolution: Tuple[int, int] = (640, 480)
    rotation_degrees: int = 0
    gate: GateConfig = field(default_factory=GateConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)

    def __post_init__(self):
        if self.engine not in ('onnx', 'torch'):
            raise ValueError(f"Unsupported engine type: {self.engine}")
        self.resolution = tuple(self.resolution)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineConfig':
        """
        Build a configuration from a plain dictionary.

        Args:
            data: Dictionary with the same keys as the dataclass fields; the
                'gate' and 'overlay' entries may be nested dictionaries

        Returns:
            Pipeline configuration
        """
        data = dict(data)
        _check_keys(cls, data)

        if isinstance(data.get('gate'), dict):
            _check_keys(GateConfig, data['gate'])
            data['gate'] = GateConfig(**data['gate'])
        if isinstance(data.get('overlay'), dict):
            _check_keys(OverlayConfig, data['overlay'])
            data['overlay'] = OverlayConfig(**data['overlay'])

        return cls(**data)


def _check_keys(config_cls, data: Dict[str, Any]):
    known = {f.name for f in fields(config_cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown {config_cls.__name__} keys: {', '.join(unknown)}")


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """
    Load a pipeline configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Pipeline configuration
    """
    with open(path, 'r') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be an object: {path}")

    return PipelineConfig.from_dict(data)
