"""
Inference backend interface.

Backends return pixel-space observations in the upright frame coordinate
system. A backend either returns a list of observations, returns
UnrecognizedOutput when the model produced something that is not a
detection layout, or raises InferenceError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol, Union

from models.detection import Observation
from models.frame import FrameData


class ModelLoadError(Exception):
    """A model artifact could not be loaded (missing, corrupt, runtime unavailable)."""


class InferenceError(Exception):
    """Model evaluation failed for one frame."""


@dataclass(frozen=True)
class UnrecognizedOutput:
    """
    The model ran but its output did not match a detection layout.

    raw_count is the number of raw result items the model produced; zero
    means the output was empty rather than unparsable.
    """
    raw_count: int = 0
    description: str = ""


@dataclass(frozen=True)
class BackendProfile:
    """Post-processing parameters that belong to one loaded model."""
    name: str
    conf_threshold: float = 0.5
    top_k: int = 10

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold < 1.0:
            raise ValueError(f"conf_threshold must be within [0, 1), got {self.conf_threshold}")
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")


InferenceOutput = Union[List[Observation], UnrecognizedOutput]


class InferenceBackend(Protocol):
    profile: BackendProfile

    def infer(self, frame: FrameData) -> InferenceOutput:
        ...
