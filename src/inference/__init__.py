"""
Inference layer: model backends and startup model selection.
"""

from .backend import (
    BackendProfile,
    InferenceBackend,
    InferenceError,
    InferenceOutput,
    ModelLoadError,
    UnrecognizedOutput,
)
from .cpu_backend import CpuYoloConfig, UltralyticsCpuBackend
from .dnn_backend import OnnxDnnBackend, OnnxDnnConfig
from .selector import (
    BackendCandidate,
    ModelSelectionError,
    ModelSelector,
    create_backend,
    create_selector_from_config,
)

__all__ = [
    "BackendProfile",
    "InferenceBackend",
    "InferenceError",
    "InferenceOutput",
    "ModelLoadError",
    "UnrecognizedOutput",
    "CpuYoloConfig",
    "UltralyticsCpuBackend",
    "OnnxDnnBackend",
    "OnnxDnnConfig",
    "BackendCandidate",
    "ModelSelectionError",
    "ModelSelector",
    "create_backend",
    "create_selector_from_config",
]
