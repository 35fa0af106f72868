"""
Raw detections as returned by inference backends, before post-processing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    Corner coordinates (x1, y1) top-left and (x2, y2) bottom-right, in
    pixels of the upright frame.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)


@dataclass(frozen=True)
class Observation:
    """
    One raw detection produced by an inference backend.

    Attributes:
        label: Human-readable class label.
        confidence: Detection confidence score (0-1).
        bbox: Bounding box in upright frame pixel coordinates.
        class_id: Optional class ID from the model.
    """
    label: str
    confidence: float
    bbox: BoundingBox
    class_id: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @classmethod
    def from_xyxy(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        confidence: float,
        label: Optional[str] = None,
        class_id: Optional[int] = None,
    ) -> "Observation":
        """Create an Observation from x1, y1, x2, y2 coordinates."""
        if label is None:
            label = str(class_id) if class_id is not None else "object"
        return cls(
            label=label,
            confidence=confidence,
            bbox=BoundingBox(x1=x1, y1=y1, x2=x2, y2=y2),
            class_id=class_id,
        )
