"""
Frame rate limiting for the inference worker.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..config import GateConfig
from ..data.types import CameraFrame


logger = logging.getLogger(__name__)


class FrameGate(ABC):
    """Decides which incoming frames are processed."""
    
    def __init__(self):
        self.accepted = 0
        self.dropped = 0
    
    @abstractmethod
    def should_process(self, timestamp_ms: float) -> bool:
        """Decide on a frame arriving at timestamp_ms."""
        pass
    
    def admit(self, frame: CameraFrame) -> bool:
        """
        Gate a frame, releasing it immediately when it is dropped.
        
        Args:
            frame: Incoming camera frame
        
        Returns:
            True if the frame should be processed
        """
        if self.should_process(frame.timestamp_ms):
            self.accepted += 1
            return True
        
        self.dropped += 1
        frame.release()
        return False
    
    def reset(self):
        self.accepted = 0
        self.dropped = 0


class TimeIntervalGate(FrameGate):
    """Accepts a frame once at least interval_ms passed since the last accepted one."""
    
    def __init__(self, interval_ms: float = 100.0):
        super().__init__()
        if interval_ms < 0:
            raise ValueError("interval_ms must be non-negative")
        self.interval_ms = interval_ms
        self.last_accepted_ms: Optional[float] = None
    
    def should_process(self, timestamp_ms: float) -> bool:
        if (self.last_accepted_ms is None
                or timestamp_ms - self.last_accepted_ms >= self.interval_ms):
            self.last_accepted_ms = timestamp_ms
            return True
        return False
    
    def reset(self):
        super().reset()
        self.last_accepted_ms = None


class FrameCountGate(FrameGate):
    """Accepts every Nth frame (frames 0, N, 2N, ...)."""
    
    def __init__(self, every_n: int = 5):
        super().__init__()
        if every_n < 1:
            raise ValueError("every_n must be at least 1")
        self.every_n = every_n
        self.frame_index = 0
    
    def should_process(self, timestamp_ms: float) -> bool:
        accept = self.frame_index % self.every_n == 0
        self.frame_index += 1
        return accept
    
    def reset(self):
        super().reset()
        self.frame_index = 0


def create_frame_gate(config: Optional[GateConfig] = None) -> FrameGate:
    """Create the frame gate described by a gate configuration."""
    config = config or GateConfig()
    if config.policy == 'time':
        return TimeIntervalGate(config.interval_ms)
    elif config.policy == 'count':
        return FrameCountGate(config.every_n)
    else:
        raise ValueError(f"Unsupported gate policy: {config.policy}")
