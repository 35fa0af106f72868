"""
Model selection with an ordered fallback policy.

Candidates are tried in priority order (specialized model first, generic
baseline last). The first one that loads becomes the active backend for
the lifetime of the process.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from models.config import BackendConfig, DetectionConfig
from .backend import InferenceBackend, ModelLoadError
from .cpu_backend import CpuYoloConfig, UltralyticsCpuBackend
from .dnn_backend import OnnxDnnBackend, OnnxDnnConfig

BackendFactory = Callable[[], InferenceBackend]


@dataclass(frozen=True)
class BackendCandidate:
    name: str
    factory: BackendFactory


class ModelSelectionError(Exception):
    """No candidate backend could be loaded; the application cannot start."""

    def __init__(self, failures: Sequence[Tuple[str, ModelLoadError]]):
        self.failures = list(failures)
        if self.failures:
            detail = "; ".join(f"{name}: {err}" for name, err in self.failures)
        else:
            detail = "no candidates configured"
        super().__init__(f"No inference backend could be loaded ({detail})")


class ModelSelector:
    """
    Resolves the active InferenceBackend.

    Example:
        selector = ModelSelector([
            BackendCandidate("yolov8s", lambda: UltralyticsCpuBackend(primary_cfg)),
            BackendCandidate("yolov8n", lambda: UltralyticsCpuBackend(baseline_cfg)),
        ])
        backend = selector.select()
    """

    def __init__(self, candidates: Sequence[BackendCandidate]):
        self.candidates = list(candidates)

    def select(self) -> InferenceBackend:
        failures: List[Tuple[str, ModelLoadError]] = []
        for candidate in self.candidates:
            try:
                backend = candidate.factory()
            except ModelLoadError as e:
                logging.warning(f"Model candidate '{candidate.name}' failed to load: {e}")
                failures.append((candidate.name, e))
                continue

            if failures:
                logging.info(
                    f"Using fallback backend '{candidate.name}' "
                    f"after {len(failures)} failed candidate(s)"
                )
            logging.info(
                f"Active inference backend: {candidate.name} "
                f"(threshold={backend.profile.conf_threshold}, top_k={backend.profile.top_k})"
            )
            return backend

        raise ModelSelectionError(failures)


def create_backend(cfg: BackendConfig, models_dir: str = "") -> InferenceBackend:
    """Build one backend from its config entry; raises ModelLoadError."""
    model_path = os.path.join(models_dir, cfg.model) if models_dir else cfg.model

    if cfg.kind == "ultralytics":
        return UltralyticsCpuBackend(
            CpuYoloConfig(
                model=model_path,
                name=cfg.name,
                conf_threshold=cfg.conf_threshold,
                top_k=cfg.top_k,
                iou_threshold=cfg.iou_threshold,
                class_name_overrides=cfg.class_name_overrides,
            )
        )
    if cfg.kind == "onnx":
        labels = cfg.labels
        if labels and models_dir and not os.path.isabs(labels):
            labels = os.path.join(models_dir, labels)
        return OnnxDnnBackend(
            OnnxDnnConfig(
                model=model_path,
                name=cfg.name,
                conf_threshold=cfg.conf_threshold,
                top_k=cfg.top_k,
                iou_threshold=cfg.iou_threshold,
                input_size=cfg.input_size,
                labels=labels,
            )
        )
    raise ModelLoadError(f"Unknown backend kind '{cfg.kind}' for candidate '{cfg.name}'")


def create_selector_from_config(detection_cfg: DetectionConfig) -> ModelSelector:
    """Factory: one candidate per `detection.candidates` entry, in order."""
    candidates = [
        BackendCandidate(
            name=c.name,
            factory=lambda c=c: create_backend(c, detection_cfg.models_dir),
        )
        for c in detection_cfg.candidates
    ]
    return ModelSelector(candidates)
