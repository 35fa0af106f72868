"""
Pipeline stages for the live detection system.

- postprocess: filter, rank, truncate and format raw observations
"""

from .postprocess import (
    EMPTY_SENTINEL,
    UNPARSED_SENTINEL,
    PostprocessConfig,
    PostprocessStage,
    format_entry,
    rank_observations,
    sentinel_entries,
)

__all__ = [
    "EMPTY_SENTINEL",
    "UNPARSED_SENTINEL",
    "PostprocessConfig",
    "PostprocessStage",
    "format_entry",
    "rank_observations",
    "sentinel_entries",
]
