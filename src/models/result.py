"""
Published state models: detection results, recording state and notices.

Each publish replaces the consumer's current value; nothing here merges.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class DetectionResult:
    """
    One frame's formatted detections.

    Attributes:
        entries: Formatted "<label> (<pct>%)" strings, highest confidence first.
        latency_ms: Inference plus post-processing time in milliseconds.
        backend: Name of the backend that produced the result.
        frame_index: Index of the frame the result belongs to.
        degraded: True when entries hold a sentinel instead of detections.
    """
    entries: Tuple[str, ...]
    latency_ms: float
    backend: Optional[str] = None
    frame_index: Optional[int] = None
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": list(self.entries),
            "latency_ms": round(self.latency_ms, 3),
            "backend": self.backend,
            "frame_index": self.frame_index,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class RecordingState:
    """Recording status as seen by the consumer."""
    is_recording: bool
    finished_output_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_recording": self.is_recording,
            "finished_output_path": (
                str(self.finished_output_path) if self.finished_output_path else None
            ),
        }


@dataclass(frozen=True)
class ErrorNotice:
    """One-shot, non-fatal error notification (e.g. a failed recording)."""
    kind: str
    message: str
    path: Optional[Path] = None
    timestamp: float = field(default_factory=time.time)
