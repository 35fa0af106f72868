"""
Per-frame detection orchestrator.

Runs the active backend on a frame, post-processes its observations and
publishes one DetectionResult. Per-frame failures never propagate to the
caller: a failed inference is skipped and the previous result stays
visible to the consumer.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from inference.backend import InferenceBackend, InferenceError, UnrecognizedOutput
from models.frame import FrameData
from models.result import DetectionResult
from runtime.sink import ResultSink
from .stages.postprocess import PostprocessConfig, PostprocessStage, sentinel_entries


@dataclass
class DetectionStats:
    """Counters for the detection consumer."""
    frames_seen: int = 0
    published: int = 0
    degraded: int = 0
    skipped: int = 0
    throttled: int = 0


class DetectionPipeline:
    """
    Detection consumer for the frame dispatcher.

    Example:
        pipeline = DetectionPipeline(backend, sink)
        dispatcher.add_consumer("detection", pipeline.on_frame)
    """

    def __init__(
        self,
        backend: InferenceBackend,
        sink: ResultSink,
        frame_interval: int = 1,
    ):
        if frame_interval < 1:
            raise ValueError(f"frame_interval must be >= 1, got {frame_interval}")
        self.backend = backend
        self.sink = sink
        self.frame_interval = frame_interval
        self.stats = DetectionStats()
        self._stage = PostprocessStage(PostprocessConfig.from_profile(backend.profile))
        self._last_result: Optional[DetectionResult] = None

    @property
    def last_result(self) -> Optional[DetectionResult]:
        """The most recently published result (held across skipped frames)."""
        return self._last_result

    @property
    def postprocess_config(self) -> PostprocessConfig:
        return self._stage.config

    def on_frame(self, frame: FrameData) -> None:
        self.stats.frames_seen += 1
        if (self.stats.frames_seen - 1) % self.frame_interval != 0:
            self.stats.throttled += 1
            return

        start = time.perf_counter()

        try:
            output = self.backend.infer(frame)
        except InferenceError as e:
            self.stats.skipped += 1
            logging.warning(f"Inference failed on frame {frame.frame_index}, holding last result: {e}")
            return
        except Exception as e:
            self.stats.skipped += 1
            logging.exception(f"Unexpected backend error on frame {frame.frame_index}: {e}")
            return

        if isinstance(output, UnrecognizedOutput):
            entries = sentinel_entries(output)
            degraded = True
            self.stats.degraded += 1
            logging.debug(
                f"Unrecognized output from {self.backend.profile.name}: "
                f"raw_count={output.raw_count} {output.description}"
            )
        else:
            entries = self._stage.process(output)
            degraded = False

        latency_ms = (time.perf_counter() - start) * 1000.0

        result = DetectionResult(
            entries=entries,
            latency_ms=latency_ms,
            backend=self.backend.profile.name,
            frame_index=frame.frame_index,
            degraded=degraded,
        )
        self._last_result = result
        self.stats.published += 1
        self.sink.publish_detection(result)
