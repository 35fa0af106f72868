"""
Recording layer: start/stop state machine and video sinks.
"""

from .controller import RecordingController, RecordingSession, RecordingStatus
from .writer import OpenCVVideoSink, RecordingWriteError, VideoSink

__all__ = [
    "RecordingController",
    "RecordingSession",
    "RecordingStatus",
    "OpenCVVideoSink",
    "RecordingWriteError",
    "VideoSink",
]
