"""
Result publishing boundary between the core and whatever presents results.

ResultHub keeps the latest published state and forwards every publish to
subscribers from a single presentation context. In threaded mode that
context is a dedicated thread fed by a FIFO queue, so publishers never
block on subscribers and publish order is preserved. Detection results
are coalesced there: while one is still queued a newer one replaces it,
so a slow subscriber skips stale results instead of letting the queue
grow. Recording states and notices are always delivered one by one.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional, Protocol, Union

from models.result import DetectionResult, ErrorNotice, RecordingState

Published = Union[DetectionResult, RecordingState, ErrorNotice]
Subscriber = Callable[[Published], None]

_STOP = object()
_DETECTION = object()


class ResultSink(Protocol):
    def publish_detection(self, result: DetectionResult) -> None:
        ...

    def publish_recording(self, state: RecordingState) -> None:
        ...

    def notify(self, notice: ErrorNotice) -> None:
        ...


class ResultHub:
    """
    In-process ResultSink.

    Each publish replaces the current value of its kind. Notices are
    one-shot events and are kept in a list for inspection.
    """

    def __init__(self, threaded: bool = False):
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []
        self._detection: Optional[DetectionResult] = None
        self._recording = RecordingState(is_recording=False)
        self._notices: List[ErrorNotice] = []
        self.publish_count = 0
        self.coalesced = 0
        self._pending_detection: Optional[DetectionResult] = None

        self._queue: Optional[queue.Queue] = None
        self._thread: Optional[threading.Thread] = None
        if threaded:
            self._queue = queue.Queue()
            self._thread = threading.Thread(target=self._run, name="presentation", daemon=True)
            self._thread.start()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def publish_detection(self, result: DetectionResult) -> None:
        if self._queue is None or self._thread is None:
            self._deliver(result)
            return
        with self._lock:
            if self._pending_detection is not None:
                self.coalesced += 1
            else:
                self._queue.put(_DETECTION)
            self._pending_detection = result

    def publish_recording(self, state: RecordingState) -> None:
        self._submit(state)

    def notify(self, notice: ErrorNotice) -> None:
        self._submit(notice)

    @property
    def detection(self) -> Optional[DetectionResult]:
        with self._lock:
            return self._detection

    @property
    def recording(self) -> RecordingState:
        with self._lock:
            return self._recording

    @property
    def notices(self) -> List[ErrorNotice]:
        with self._lock:
            return list(self._notices)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued publish has been delivered. Returns False on timeout."""
        if self._queue is None:
            return True
        done = threading.Event()
        self._queue.put(done)
        return done.wait(timeout)

    def close(self, timeout: float = 2.0) -> None:
        if self._queue is None or self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def _submit(self, item: Published) -> None:
        if self._queue is not None and self._thread is not None:
            self._queue.put(item)
        else:
            self._deliver(item)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            if isinstance(item, threading.Event):
                item.set()
                continue
            if item is _DETECTION:
                with self._lock:
                    item, self._pending_detection = self._pending_detection, None
            self._deliver(item)

    def _deliver(self, item: Published) -> None:
        with self._lock:
            if isinstance(item, DetectionResult):
                self._detection = item
            elif isinstance(item, RecordingState):
                self._recording = item
            elif isinstance(item, ErrorNotice):
                self._notices.append(item)
            self.publish_count += 1
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(item)
            except Exception as e:
                logging.warning(f"Result subscriber error: {e}")


def log_subscriber(item: Published) -> None:
    """Subscriber that mirrors published state into the log."""
    if isinstance(item, DetectionResult):
        logging.debug(
            f"Detections ({item.latency_ms:.1f} ms, {item.backend}): {', '.join(item.entries) or '-'}"
        )
    elif isinstance(item, RecordingState):
        if item.is_recording:
            logging.info("Recording state: REC")
        elif item.finished_output_path is not None:
            logging.info(f"Recording available: {item.finished_output_path}")
        else:
            logging.info("Recording state: idle")
    elif isinstance(item, ErrorNotice):
        logging.error(f"[{item.kind}] {item.message}")
