from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from pipeline.detection import DetectionPipeline
from recording.controller import RecordingController
from runtime.sink import ResultHub


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: dict
    results: ResultHub
    detector: DetectionPipeline
    recorder: RecordingController

    # Observability
    system_stats: Dict[str, Any] = field(default_factory=dict)

    def update_stats(self, **stats: Any) -> None:
        self.system_stats.update(stats)
