"""
Frame fan-out to independent consumers.

Every consumer (detection, recording, ...) gets its own one-slot mailbox
and worker thread. The slot stays occupied until the consumer has finished
with the frame, so a frame arriving while the consumer is still busy is
dropped for that consumer (late-frame discard) instead of queued. One
consumer being slow never delays the capture loop or the other consumers.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from models.frame import FrameData

FrameConsumer = Callable[[FrameData], None]


class FrameMailbox:
    """
    Capacity-1 hand-off between the capture loop and one consumer.

    With discard_late=True, offer() never blocks: it returns False and
    counts a drop when a frame is pending or being processed. With
    discard_late=False it blocks until the consumer is free.
    """

    def __init__(self, discard_late: bool = True):
        self.discard_late = discard_late
        self._cond = threading.Condition()
        self._pending: Optional[FrameData] = None
        self._busy = False
        self._closed = False
        self.accepted = 0
        self.dropped = 0

    @property
    def is_idle(self) -> bool:
        with self._cond:
            return self._pending is None and not self._busy

    def offer(self, frame: FrameData) -> bool:
        with self._cond:
            if self._closed:
                return False
            if self._pending is not None or self._busy:
                if self.discard_late:
                    self.dropped += 1
                    return False
                while (self._pending is not None or self._busy) and not self._closed:
                    self._cond.wait()
                if self._closed:
                    return False
            self._pending = frame
            self.accepted += 1
            self._cond.notify_all()
            return True

    def take(self) -> Optional[FrameData]:
        """Block until a frame is available; None once closed and empty."""
        with self._cond:
            while self._pending is None and not self._closed:
                self._cond.wait()
            if self._pending is None:
                return None
            frame, self._pending = self._pending, None
            self._busy = True
            return frame

    def done(self) -> None:
        """Mark the taken frame as fully processed, freeing the slot."""
        with self._cond:
            self._busy = False
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending is not None or self._busy:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True


class _ConsumerWorker:
    def __init__(self, name: str, callback: FrameConsumer, discard_late: bool):
        self.name = name
        self.callback = callback
        self.mailbox = FrameMailbox(discard_late=discard_late)
        self.errors = 0
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=f"consumer-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float]) -> None:
        self.mailbox.close()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while True:
            frame = self.mailbox.take()
            if frame is None:
                break
            try:
                self.callback(frame)
            except Exception as e:
                self.errors += 1
                logging.exception(f"Consumer '{self.name}' failed on frame {frame.frame_index}: {e}")
            finally:
                self.mailbox.done()


class FrameDispatcher:
    """
    Delivers each captured frame to every registered consumer.

    Example:
        dispatcher = FrameDispatcher(discard_late_frames=True)
        dispatcher.add_consumer("detection", pipeline.on_frame)
        dispatcher.add_consumer("recording", recorder.on_frame)
        dispatcher.start()
        for frame_data in source:
            dispatcher.dispatch(frame_data)
        dispatcher.stop()

    With threaded=False every consumer runs inline in registration order.
    """

    def __init__(self, discard_late_frames: bool = True, threaded: bool = True):
        self.discard_late_frames = discard_late_frames
        self.threaded = threaded
        self._workers: List[_ConsumerWorker] = []
        self._started = False
        self.dispatched = 0

    def add_consumer(self, name: str, callback: FrameConsumer) -> None:
        worker = _ConsumerWorker(name, callback, self.discard_late_frames)
        self._workers.append(worker)
        if self._started and self.threaded:
            worker.start()

    def start(self) -> None:
        self._started = True
        if self.threaded:
            for worker in self._workers:
                worker.start()

    def dispatch(self, frame: FrameData) -> None:
        self.dispatched += 1
        for worker in self._workers:
            if self.threaded:
                worker.mailbox.offer(frame)
                continue
            try:
                worker.callback(frame)
            except Exception as e:
                worker.errors += 1
                logging.exception(f"Consumer '{worker.name}' failed on frame {frame.frame_index}: {e}")

    def wait_idle(self, timeout: Optional[float] = None, consumer: Optional[str] = None) -> bool:
        """Wait until every consumer (or just the named one) has finished its pending frame."""
        workers = [w for w in self._workers if consumer is None or w.name == consumer]
        return all(w.mailbox.wait_idle(timeout) for w in workers)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        for worker in self._workers:
            worker.stop(timeout)
        self._started = False

    def dropped_frames(self) -> Dict[str, int]:
        return {w.name: w.mailbox.dropped for w in self._workers}

    def consumer_errors(self) -> Dict[str, int]:
        return {w.name: w.errors for w in self._workers}
