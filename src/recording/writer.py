"""
Video sinks used by the recording controller.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from models.frame import VALID_ORIENTATIONS, rotate_frame


class RecordingWriteError(Exception):
    """Opening, writing or finalizing a recording failed."""


class VideoSink(Protocol):
    supports_orientation: bool
    supports_stabilization: bool

    def set_orientation(self, degrees: int) -> None:
        ...

    def set_stabilization(self, enabled: bool) -> None:
        ...

    def open(self, path: Path, frame_size: Tuple[int, int], fps: float) -> None:
        ...

    def write(self, frame: np.ndarray) -> None:
        ...

    def finalize(self) -> Path:
        ...

    def abort(self) -> None:
        ...


class OpenCVVideoSink:
    """
    cv2.VideoWriter-backed sink.

    Orientation is applied in software by rotating frames before writing.
    Stabilization has no OpenCV counterpart and is reported as unsupported.
    """

    supports_orientation = True
    supports_stabilization = False

    def __init__(self, codec: str = "mp4v"):
        if len(codec) != 4:
            raise ValueError(f"codec must be a FourCC string, got '{codec}'")
        self.codec = codec
        self._orientation = 0
        self._writer: Optional[cv2.VideoWriter] = None
        self._path: Optional[Path] = None
        self._size: Optional[Tuple[int, int]] = None

    def set_orientation(self, degrees: int) -> None:
        if degrees not in VALID_ORIENTATIONS:
            raise ValueError(f"orientation must be one of {VALID_ORIENTATIONS}, got {degrees}")
        self._orientation = degrees

    def set_stabilization(self, enabled: bool) -> None:
        if enabled:
            logging.debug("OpenCV writer has no stabilization; ignoring request")

    def open(self, path: Path, frame_size: Tuple[int, int], fps: float) -> None:
        width, height = frame_size
        if self._orientation in (90, 270):
            width, height = height, width

        out_dir = os.path.dirname(str(path))
        if out_dir and not os.path.exists(out_dir):
            try:
                os.makedirs(out_dir)
            except OSError as e:
                raise RecordingWriteError(f"Cannot create output directory {out_dir}: {e}") from e

        fourcc = cv2.VideoWriter_fourcc(*self.codec)
        writer = cv2.VideoWriter(str(path), fourcc, float(fps), (int(width), int(height)), True)
        if not writer.isOpened():
            writer.release()
            raise RecordingWriteError(f"Cannot open video writer for {path} (codec={self.codec})")

        self._writer = writer
        self._path = Path(path)
        self._size = (int(width), int(height))

    def write(self, frame: np.ndarray) -> None:
        if self._writer is None:
            raise RecordingWriteError("Video writer is not open")

        try:
            frame = rotate_frame(frame, self._orientation)
            if (frame.shape[1], frame.shape[0]) != self._size:
                frame = cv2.resize(frame, self._size)
            self._writer.write(frame)
        except (cv2.error, ValueError, IndexError) as e:
            raise RecordingWriteError(f"Failed to write frame to {self._path}: {e}") from e

    def finalize(self) -> Path:
        if self._writer is None or self._path is None:
            raise RecordingWriteError("Video writer is not open")

        path = self._path
        self._writer.release()
        self._writer = None

        if not path.exists() or path.stat().st_size == 0:
            raise RecordingWriteError(f"Recording output missing or empty: {path}")
        return path

    def abort(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None
            logging.debug(f"Video writer released without finalize: {self._path}")
