"""
Post-processing stage: turns raw observations into display entries.

filter (confidence > threshold) -> sort (descending) -> truncate (top K) -> format
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from inference.backend import BackendProfile, UnrecognizedOutput
from models.detection import Observation

UNPARSED_SENTINEL = "Results present but unparsed"
EMPTY_SENTINEL = "No objects detected"


@dataclass(frozen=True)
class PostprocessConfig:
    """
    Attributes:
        conf_threshold: Observations must score strictly above this value.
        top_k: Maximum number of entries kept.
    """
    conf_threshold: float = 0.5
    top_k: int = 10

    @classmethod
    def from_profile(cls, profile: BackendProfile) -> "PostprocessConfig":
        return cls(conf_threshold=profile.conf_threshold, top_k=profile.top_k)


def format_entry(observation: Observation) -> str:
    """Format as '<label> (<pct>%)'."""
    return f"{observation.label} ({round(observation.confidence * 100)}%)"


def rank_observations(observations: Iterable[Observation], config: PostprocessConfig) -> List[Observation]:
    """Keep observations above threshold, highest confidence first, at most top_k."""
    kept = [o for o in observations if o.confidence > config.conf_threshold]
    kept.sort(key=lambda o: o.confidence, reverse=True)
    return kept[:config.top_k]


def sentinel_entries(output: UnrecognizedOutput) -> Tuple[str, ...]:
    """Degraded result for output the backend could not parse."""
    return (UNPARSED_SENTINEL,) if output.raw_count > 0 else (EMPTY_SENTINEL,)


class PostprocessStage:
    """
    Pipeline stage applying one backend's threshold and top-K.

    Example:
        stage = PostprocessStage(PostprocessConfig.from_profile(backend.profile))
        entries = stage.process(observations)
    """

    def __init__(self, config: PostprocessConfig):
        self._config = config

    @property
    def config(self) -> PostprocessConfig:
        return self._config

    def process(self, observations: Iterable[Observation]) -> Tuple[str, ...]:
        return tuple(format_entry(o) for o in rank_observations(observations, self._config))
