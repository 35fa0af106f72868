"""
Recording state machine.

    Idle --start()--> Recording --stop() / fatal write error--> Idle

stop() only requests finalization; the transition back to Idle happens
when the finalizer thread reports completion. A failed finalize still
returns the controller to Idle so a broken writer can never leave it
stuck in Recording.

The controller is an independent frame consumer: it shares nothing with
the detection pipeline, and its lock orders its own commands against its own
frame writes. Every state change is published while the lock is held, so
the sink sees recording states in the order they happened.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple

from models.config import RecordingConfig
from models.frame import FrameData
from models.result import ErrorNotice, RecordingState
from runtime.sink import ResultSink
from .writer import OpenCVVideoSink, RecordingWriteError, VideoSink


class RecordingStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


@dataclass
class RecordingSession:
    """One start/stop cycle; owns the open sink until finalized."""
    path: Path
    started_at: float
    sink: VideoSink
    frames_written: int = 0


class RecordingController:
    """
    Starts and stops recording of the shared frame feed.

    Example:
        recorder = RecordingController(hub, RecordingConfig(output_dir="output/video"))
        dispatcher.add_consumer("recording", recorder.on_frame)
        recorder.start()
        ...
        future = recorder.stop()
        path = future.result()  # None if finalize failed
    """

    def __init__(
        self,
        results: ResultSink,
        config: Optional[RecordingConfig] = None,
        frame_size: Tuple[int, int] = (1280, 720),
        fps: float = 30.0,
        sink_factory: Optional[Callable[[], VideoSink]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._results = results
        self._config = config or RecordingConfig()
        self._frame_size = frame_size
        self._fps = float(self._config.fps or fps)
        self._sink_factory = sink_factory or (lambda: OpenCVVideoSink(codec=self._config.codec))
        self._clock = clock

        self._lock = threading.RLock()
        self._state = RecordingStatus.IDLE
        self._session: Optional[RecordingSession] = None
        self._finalizing: Optional[RecordingSession] = None
        self._last_stamp_us = 0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recording-finalize")

        self.last_output_path: Optional[Path] = None
        self.sessions_started = 0

    @property
    def state(self) -> RecordingStatus:
        with self._lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state is RecordingStatus.RECORDING

    @property
    def is_finalizing(self) -> bool:
        with self._lock:
            return self._finalizing is not None

    @property
    def current_path(self) -> Optional[Path]:
        with self._lock:
            session = self._session or self._finalizing
            return session.path if session else None

    def start(self) -> bool:
        """Begin a new session. Returns False when already recording or the sink failed to open."""
        with self._lock:
            if self._state is RecordingStatus.RECORDING:
                logging.debug("start() ignored: already recording")
                return False

            started_at = self._clock()
            path = self._next_output_path(started_at)
            sink = self._sink_factory()
            self._apply_hints(sink)
            try:
                sink.open(path, self._frame_size, self._fps)
            except RecordingWriteError as e:
                self._report_error(f"Could not start recording: {e}", path)
                return False

            self._session = RecordingSession(path=path, started_at=started_at, sink=sink)
            self._state = RecordingStatus.RECORDING
            self.sessions_started += 1
            logging.info(f"Started recording to: {path}")
            self._results.publish_recording(RecordingState(is_recording=True))
            return True

    def stop(self) -> Optional["Future[Optional[Path]]"]:
        """
        Request finalization of the active session.

        Returns a future resolving to the finished path (None on failure),
        or None when there was nothing to stop.
        """
        with self._lock:
            if self._state is RecordingStatus.IDLE or self._finalizing is not None:
                logging.debug("stop() ignored: not recording")
                return None
            session = self._session
            self._session = None
            self._finalizing = session
            logging.info(f"Stopping recording: {session.path} ({session.frames_written} frames)")
            return self._executor.submit(self._finalize, session)

    def on_frame(self, frame: FrameData) -> None:
        with self._lock:
            # Next session opens at the upright size of the live feed
            if frame.orientation in (90, 270):
                self._frame_size = (frame.height, frame.width)
            else:
                self._frame_size = (frame.width, frame.height)
            session = self._session
            if session is None:
                return
            try:
                session.sink.write(frame.upright())
                session.frames_written += 1
            except RecordingWriteError as e:
                self._session = None
                self._state = RecordingStatus.IDLE
                session.sink.abort()
                self._report_error(f"Recording stopped after write failure: {e}", session.path)

    def shutdown(self, timeout: Optional[float] = 10.0) -> Optional[Path]:
        """Stop any active session, wait for it to finalize and release the finalizer thread."""
        future = self.stop()
        path = None
        if future is not None:
            try:
                path = future.result(timeout)
            except FutureTimeoutError:
                logging.warning(f"Recording finalize did not complete within {timeout}s")
        self._executor.shutdown(wait=True)
        return path

    def _finalize(self, session: RecordingSession) -> Optional[Path]:
        error: Optional[Exception] = None
        path: Optional[Path] = None
        try:
            path = session.sink.finalize()
        except RecordingWriteError as e:
            error = e
        except Exception as e:
            logging.exception(f"Unexpected error finalizing {session.path}")
            error = e
        elapsed = self._clock() - session.started_at

        # State change and publish stay in one critical section
        with self._lock:
            self._finalizing = None
            self._state = RecordingStatus.IDLE
            if error is not None:
                self._report_error(f"Recording error: {error}", session.path)
                return None

            self.last_output_path = path
            logging.info(f"Finished recording to: {path} ({session.frames_written} frames, {elapsed:.1f}s)")
            self._results.publish_recording(RecordingState(is_recording=False, finished_output_path=path))
            return path

    def _report_error(self, message: str, path: Optional[Path]) -> None:
        """Publish the Idle state and one notice; callers hold the lock."""
        logging.error(message)
        self._results.publish_recording(RecordingState(is_recording=False))
        self._results.notify(ErrorNotice(kind="recording", message=message, path=path))

    def _apply_hints(self, sink: VideoSink) -> None:
        """Orientation and stabilization are best effort; missing support is not an error."""
        if self._config.orientation:
            if sink.supports_orientation:
                sink.set_orientation(self._config.orientation)
            else:
                logging.debug("Video sink does not support orientation; recording unrotated")
        if self._config.stabilization:
            if sink.supports_stabilization:
                sink.set_stabilization(True)
            else:
                logging.debug("Video sink does not support stabilization; skipping")

    def _next_output_path(self, now: float) -> Path:
        """recording-<epoch seconds>.<ext>, strictly increasing within this process."""
        stamp_us = max(int(now * 1_000_000), self._last_stamp_us + 1)
        while True:
            name = f"recording-{stamp_us // 1_000_000}.{stamp_us % 1_000_000:06d}.{self._config.extension}"
            path = Path(self._config.output_dir) / name
            if not os.path.exists(path):
                break
            stamp_us += 1
        self._last_stamp_us = stamp_us
        return path
