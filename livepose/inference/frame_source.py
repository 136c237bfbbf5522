"""
Camera frame source backed by OpenCV video capture.
"""

import logging
import threading
import time
from typing import Iterator, Optional, Tuple, Union

import cv2

from ..data.types import CameraFrame


logger = logging.getLogger(__name__)


class VideoCaptureSource:
    """Reads BGR frames from a webcam or video file."""
    
    def __init__(
        self,
        source: Union[int, str] = 0,
        resolution: Tuple[int, int] = (640, 480),
        fps: int = 30,
        rotation_degrees: int = 0
    ):
        """
        Initialize video capture source.
        
        Args:
            source: Camera ID or video file path
            resolution: Requested capture resolution (width, height)
            fps: Requested capture FPS
            rotation_degrees: Clockwise rotation reported with every frame
        """
        self.source = source
        self.resolution = resolution
        self.fps = fps
        self.rotation_degrees = rotation_degrees
        self.cap = None
        
        self._lock = threading.Lock()
        self.outstanding = 0
    
    def open(self) -> bool:
        """Start capture; returns False when the device cannot be opened."""
        self.cap = cv2.VideoCapture(self.source)
        
        if not self.cap.isOpened():
            logger.error("Could not open video source %r", self.source)
            self.cap = None
            return False
        
        if isinstance(self.source, int):
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)
        
        return True
    
    def close(self):
        """Stop capture."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None
    
    def _on_release(self, frame: CameraFrame):
        with self._lock:
            self.outstanding -= 1
    
    def read(self) -> Optional[CameraFrame]:
        """
        Read the next frame.
        
        Returns:
            A BGR camera frame, or None at the end of the stream
        """
        if self.cap is None:
            return None
        
        ret, image = self.cap.read()
        if not ret:
            return None
        
        with self._lock:
            self.outstanding += 1
        
        height, width = image.shape[:2]
        return CameraFrame(
            image,
            width,
            height,
            rotation_degrees=self.rotation_degrees,
            timestamp_ms=time.monotonic() * 1000.0,
            pixel_format='bgr',
            on_release=self._on_release
        )
    
    def frames(self) -> Iterator[CameraFrame]:
        """Iterate over frames until the stream ends."""
        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame
    
    def __enter__(self):
        if self.cap is None and not self.open():
            raise RuntimeError(f"Could not open video source {self.source!r}")
        return self
    
    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False
