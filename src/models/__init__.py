"""
Typed models for the live detection application.
"""

from .frame import FrameData, rotate_frame
from .detection import BoundingBox, Observation
from .result import DetectionResult, ErrorNotice, RecordingState
from .config import (
    Config,
    CameraConfig,
    BackendConfig,
    DetectionConfig,
    RecordingConfig,
)

__all__ = [
    # Frame
    "FrameData",
    "rotate_frame",
    # Detection
    "BoundingBox",
    "Observation",
    # Published state
    "DetectionResult",
    "ErrorNotice",
    "RecordingState",
    # Config
    "Config",
    "CameraConfig",
    "BackendConfig",
    "DetectionConfig",
    "RecordingConfig",
]
