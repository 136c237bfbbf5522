"""
Live Pose Estimation Package

Single-person body keypoint estimation on live camera frames with MoveNet and
PoseNet style models, and a skeleton overlay drawn over the camera preview.
"""

__version__ = "1.0.0"
