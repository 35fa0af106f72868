"""
Pipeline module for the live detection system.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources (engine)
- Fan-out to independent consumers with late-frame discard (dispatch)
- Inference, post-processing and result publishing (detection)
"""

from .detection import DetectionPipeline, DetectionStats
from .dispatch import FrameDispatcher, FrameMailbox
from .engine import PipelineEngine, PipelineConfig, create_engine_from_config
from .stages.postprocess import PostprocessConfig, PostprocessStage

__all__ = [
    "DetectionPipeline",
    "DetectionStats",
    "FrameDispatcher",
    "FrameMailbox",
    "PipelineEngine",
    "PipelineConfig",
    "create_engine_from_config",
    "PostprocessConfig",
    "PostprocessStage",
]
