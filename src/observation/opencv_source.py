"""
cv2.VideoCapture frame source.

device_id selects what is opened:
- int: local camera index
- "rtsp://..." / "rtsps://...": network stream, reconnected on read failure
- any other string: video file path, finite
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse, urlunparse

import cv2
import numpy as np

from models.frame import FrameData
from .base import ObservationSource, ObservationConfig

# Read failures tolerated on a live device before giving up on a reconnect.
MAX_RECONNECTS = 3


def describe_device(device_id: Union[int, str]) -> str:
    """Printable device id with any URL password masked."""
    if not isinstance(device_id, str) or "://" not in device_id:
        return str(device_id)
    parsed = urlparse(device_id)
    if parsed.password is None:
        return device_id
    netloc = f"{parsed.username}:***@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Attributes:
        device_id: Camera index, stream URL or video file path.
        rtsp_transport: "tcp" or "udp" for network streams.
        buffer_size: Capture buffer length; 1 keeps a live feed current.
        max_retries: Attempts to open the device before failing.
        swap_rb: Swap red and blue channels for sources that deliver RGB.
        flip_horizontal: Mirror left-right.
        flip_vertical: Mirror top-bottom.
    """
    device_id: Union[int, str] = 0
    rtsp_transport: str = "tcp"
    buffer_size: int = 1
    max_retries: int = 3
    swap_rb: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """Adapter: build from the `camera` section of the config."""
        resolution = camera_cfg.get("resolution")
        return cls(
            source_id=source_id,
            resolution=tuple(resolution) if resolution else None,
            fps=camera_cfg.get("fps"),
            orientation=camera_cfg.get("orientation", 0) or 0,
            device_id=camera_cfg.get("device_id", 0),
            rtsp_transport=camera_cfg.get("rtsp_transport", "tcp"),
            buffer_size=camera_cfg.get("buffer_size", 1),
            max_retries=camera_cfg.get("max_retries", 3),
            swap_rb=camera_cfg.get("swap_rb", False),
            flip_horizontal=camera_cfg.get("flip_horizontal", False),
            flip_vertical=camera_cfg.get("flip_vertical", False),
        )


def _flip_code(horizontal: bool, vertical: bool) -> Optional[int]:
    if horizontal and vertical:
        return -1
    if horizontal:
        return 1
    if vertical:
        return 0
    return None


class OpenCVSource(ObservationSource):
    """
    Camera, stream or file read through OpenCV.

    Frames are stamped with time.monotonic() and the configured orientation
    hint; pixels are never rotated here.
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._cv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._read_failures = 0

    @property
    def device_id(self) -> Union[int, str]:
        return self._cv_config.device_id

    @property
    def is_rtsp(self) -> bool:
        return isinstance(self.device_id, str) and self.device_id.startswith(("rtsp://", "rtsps://"))

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and not self.is_rtsp and os.path.exists(self.device_id)

    @property
    def is_finite(self) -> bool:
        return self.is_file

    def open(self) -> None:
        if self._is_open:
            return
        self._connect()
        self._is_open = True
        self._frame_index = 0
        logging.info(
            f"Frame source '{self.source_id}' opened: {describe_device(self.device_id)} "
            f"(requested {self._cv_config.resolution} @ {self._cv_config.fps} fps, "
            f"orientation={self._cv_config.orientation})"
        )

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        ok, frame = self._cap.read()
        if not ok or frame is None:
            if self.is_file:
                logging.info(f"End of video file: {self.device_id}")
                return None
            frame = self._recover()
            if frame is None:
                return None
        self._read_failures = 0

        frame = self._apply_transforms(frame)
        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=time.monotonic(),
            orientation=self._cv_config.orientation,
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"Frame source '{self.source_id}' closed after {self._frame_index} frames")
        self._is_open = False

    def _connect(self) -> None:
        """Open the capture device with exponential backoff between attempts."""
        cfg = self._cv_config
        if self.is_rtsp:
            os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = f"rtsp_transport;{cfg.rtsp_transport}"

        for attempt in range(1, cfg.max_retries + 1):
            if self._cap is not None:
                self._cap.release()
            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            if attempt < cfg.max_retries:
                delay = min(2 ** attempt, 10)
                logging.warning(
                    f"Could not open {describe_device(self.device_id)} "
                    f"(attempt {attempt}/{cfg.max_retries}), retrying in {delay}s"
                )
                time.sleep(delay)
        else:
            self._cap.release()
            self._cap = None
            raise RuntimeError(
                f"Failed to open device {describe_device(self.device_id)} after {cfg.max_retries} attempts"
            )

        if isinstance(self.device_id, int):
            self._configure_camera()
        if not self.is_file:
            # Let auto-exposure settle
            time.sleep(0.5)

    def _configure_camera(self) -> None:
        cfg = self._cv_config
        if cfg.resolution:
            width, height = cfg.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if cfg.fps:
            self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)
        logging.info(
            f"Camera negotiated {self._cap.get(cv2.CAP_PROP_FRAME_WIDTH):.0f}x"
            f"{self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT):.0f} @ {self._cap.get(cv2.CAP_PROP_FPS):.1f} fps"
        )

    def _recover(self) -> Optional[np.ndarray]:
        """Reconnect a live device after a failed read; returns the first frame or None."""
        self._read_failures += 1
        if self._read_failures > MAX_RECONNECTS:
            logging.error(f"Giving up on {describe_device(self.device_id)} after {MAX_RECONNECTS} reconnects")
            return None

        logging.warning(f"Frame read failed ({self._read_failures}/{MAX_RECONNECTS}), reconnecting")
        try:
            self._connect()
        except RuntimeError as e:
            logging.error(f"Reconnect failed: {e}")
            return None
        ok, frame = self._cap.read()
        return frame if ok else None

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Mirror and channel swap. Rotation travels as a hint instead."""
        cfg = self._cv_config
        code = _flip_code(cfg.flip_horizontal, cfg.flip_vertical)
        if code is not None:
            frame = cv2.flip(frame, code)
        if cfg.swap_rb:
            frame = frame[..., ::-1].copy()
        return frame


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: str = "camera") -> ObservationSource:
    """Factory: build the configured frame source."""
    backend = camera_cfg.get("backend", "opencv")
    if backend != "opencv":
        raise ValueError(f"Unsupported camera backend: {backend}")
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id))
