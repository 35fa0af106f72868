"""
FrameData model for captured video frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

VALID_ORIENTATIONS = (0, 90, 180, 270)


@dataclass(frozen=True)
class FrameData:
    """
    Metadata and payload for a captured video frame.

    The pixel buffer belongs to the delivery callback. Consumers that keep
    it beyond ``on_frame`` must take a copy.

    Attributes:
        frame: The raw frame data as a numpy array (BGR format).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Monotonic timestamp (time.monotonic) of capture.
        orientation: Clockwise rotation in degrees needed to make the frame upright.
        frame_index: Sequential frame number since start.
        source: Identifier for the camera/video source.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    orientation: int = 0
    frame_index: int = 0
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.orientation not in VALID_ORIENTATIONS:
            raise ValueError(f"orientation must be one of {VALID_ORIENTATIONS}, got {self.orientation}")

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        orientation: int = 0,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=timestamp,
            orientation=orientation,
            frame_index=frame_index,
            source=source,
        )

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Return (height, width, channels)."""
        return self.frame.shape

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def upright(self) -> np.ndarray:
        """Return the pixel data rotated according to the orientation hint."""
        return rotate_frame(self.frame, self.orientation)


def rotate_frame(frame: np.ndarray, orientation: int) -> np.ndarray:
    """Rotate a frame clockwise by 0/90/180/270 degrees."""
    if orientation == 90:
        return cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
    if orientation == 180:
        return cv2.rotate(frame, cv2.ROTATE_180)
    if orientation == 270:
        return cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)
    return frame
