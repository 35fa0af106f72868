"""
Pipeline engine for the live detection system.

This module owns the capture loop: it reads frames from an
ObservationSource and hands each one to the frame dispatcher, which feeds
the detection pipeline and the recording controller independently.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict

import cv2

from models.frame import FrameData
from observation import ObservationSource, create_source_from_config
from .dispatch import FrameConsumer, FrameDispatcher

if TYPE_CHECKING:
    from runtime.context import RuntimeContext

WINDOW_NAME = "Live Detection"


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before stopping.
        stats_log_interval: Seconds between status log messages.
        discard_late_frames: Drop frames a busy consumer cannot take (live feeds).
        threaded: Run each consumer on its own worker thread.
        display: Enable cv2 debug window ('r' toggles recording, 'q' quits).
        record: Start recording as soon as the source is open.
        finalize_timeout: Seconds to wait for a recording to finalize on shutdown.
    """
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    discard_late_frames: bool = True
    threaded: bool = True
    display: bool = False
    record: bool = False
    finalize_timeout: float = 10.0


@dataclass
class PipelineStats:
    """Runtime statistics for the capture loop."""
    frame_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0


class PipelineEngine:
    """
    Capture loop feeding detection and recording.

    This engine:
    - Reads frames serially from any ObservationSource
    - Dispatches each frame to the detection and recording consumers
    - Never lets a consumer error reach the capture loop
    - Waits for an active recording to finalize before returning

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        engine = PipelineEngine(source, ctx, PipelineConfig())
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        ctx: RuntimeContext,
        config: PipelineConfig,
    ):
        self.source = source
        self.ctx = ctx
        self.config = config
        self.stats = PipelineStats()
        self._running = False
        self.dispatcher = FrameDispatcher(
            discard_late_frames=config.discard_late_frames,
            threaded=config.threaded,
        )
        self.dispatcher.add_consumer("detection", ctx.detector.on_frame)
        self.dispatcher.add_consumer("recording", ctx.recorder.on_frame)

    def add_consumer(self, name: str, callback: FrameConsumer) -> None:
        """
        Register an extra frame consumer.

        Args:
            name: Consumer name used in logs and drop statistics.
            callback: Function taking a FrameData.
        """
        self.dispatcher.add_consumer(name, callback)

    def run(self) -> None:
        """
        Run the capture loop.

        Opens the source, dispatches frames until stopped or exhausted,
        then releases resources.
        """
        self._running = True
        self.stats = PipelineStats()

        try:
            self.source.open()
            self.dispatcher.start()
            logging.info(f"Pipeline started: source={self.source.source_id}")

            if self.config.record:
                self.ctx.recorder.start()

            while self._running:
                frame_data = self.source.read()
                if frame_data is None:
                    if self._should_stop_after_miss():
                        break
                    continue

                self.stats.consecutive_failures = 0
                self.stats.frame_count += 1
                self.dispatcher.dispatch(frame_data)

                if self.config.display and not self._handle_display(frame_data):
                    break
                self._handle_periodic_tasks()

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._running = False

    def snapshot(self) -> Dict[str, Any]:
        """Current counters for logs and status output."""
        detector = self.ctx.detector
        last = detector.last_result
        return {
            "frames": self.stats.frame_count,
            "dropped": self.dispatcher.dropped_frames(),
            "published": detector.stats.published,
            "degraded": detector.stats.degraded,
            "skipped": detector.stats.skipped,
            "last_latency_ms": round(last.latency_ms, 1) if last else None,
            "recording": self.ctx.recorder.is_recording,
        }

    def _should_stop_after_miss(self) -> bool:
        """Account for a frame the source could not deliver; True ends the loop."""
        if self.source.is_finite:
            logging.info(f"Source {self.source.source_id} exhausted after {self.stats.frame_count} frames")
            return True

        self.stats.consecutive_failures += 1
        misses = self.stats.consecutive_failures
        limit = self.config.max_consecutive_failures
        if misses >= limit:
            logging.error(f"No frame from {self.source.source_id} in {misses} attempts, stopping capture")
            return True
        logging.warning(f"No frame from {self.source.source_id} ({misses}/{limit}), retrying")
        time.sleep(0.5)
        return False

    def _handle_display(self, frame_data: FrameData) -> bool:
        """
        Show the frame with the latest result and handle keys.

        Returns False if user pressed 'q' to quit.
        """
        frame = frame_data.upright().copy()
        result = self.ctx.results.detection

        y = 30
        if self.ctx.recorder.is_recording:
            cv2.circle(frame, (20, y - 6), 6, (0, 0, 255), -1)
            cv2.putText(frame, "REC", (32, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 255), 2)
            y += 30
        if result is not None:
            cv2.putText(frame, f"{result.latency_ms:.1f} ms", (10, y),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
            for entry in result.entries:
                y += 24
                cv2.putText(frame, entry, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 0), 2)

        cv2.imshow(WINDOW_NAME, frame)
        key = cv2.waitKey(1) & 0xFF
        if key == ord('r'):
            if self.ctx.recorder.is_recording:
                self.ctx.recorder.stop()
            else:
                self.ctx.recorder.start()
        return key != ord('q')

    def _handle_periodic_tasks(self) -> None:
        """Log statistics periodically."""
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            snapshot = self.snapshot()
            self.ctx.update_stats(**snapshot)
            logging.info(f"Pipeline stats: {snapshot}")
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        """Clean up resources."""
        self._running = False

        self.dispatcher.stop()

        path = self.ctx.recorder.shutdown(timeout=self.config.finalize_timeout)
        if path is not None:
            logging.info(f"Recording saved on shutdown: {path}")

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        self.ctx.results.drain(timeout=2.0)

        if self.config.display:
            cv2.destroyAllWindows()

        self.ctx.update_stats(**self.snapshot())
        logging.info(f"Pipeline stopped: {self.snapshot()}")


def create_engine_from_config(
    config: Dict[str, Any],
    ctx: RuntimeContext,
    display: bool = False,
    record: bool = False,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the config dict.

    Args:
        config: Full application config dict.
        ctx: RuntimeContext with detector, recorder and results.
        display: Enable display window.
        record: Start recording at launch.
    """
    camera_cfg = config.get("camera", {})
    source = create_source_from_config(camera_cfg, source_id="main-camera")

    pipeline_cfg = config.get("pipeline", {}) or {}
    pipeline_config = PipelineConfig(
        max_consecutive_failures=int(pipeline_cfg.get("max_consecutive_failures", 10)),
        stats_log_interval=float(pipeline_cfg.get("stats_log_interval", 60.0)),
        discard_late_frames=bool(camera_cfg.get("discard_late_frames", True)) and not source.is_finite,
        threaded=bool(pipeline_cfg.get("threaded", True)),
        display=display,
        record=record,
        finalize_timeout=float(pipeline_cfg.get("finalize_timeout", 10.0)),
    )

    return PipelineEngine(source, ctx, pipeline_config)
