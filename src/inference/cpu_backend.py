"""
Ultralytics YOLO backend.

Loads `.pt` weights through Ultralytics and converts its boxes into
Observations. The weights file must already exist under the models
directory; a missing artifact is a load-time error, never a download.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from models.detection import Observation
from models.frame import FrameData
from .backend import (
    BackendProfile,
    InferenceBackend,
    InferenceError,
    InferenceOutput,
    ModelLoadError,
    UnrecognizedOutput,
)

# Result attributes that carry data for non-detection heads.
_OTHER_HEADS = ("probs", "obb", "keypoints", "masks")


@dataclass(frozen=True)
class CpuYoloConfig:
    model: str
    name: Optional[str] = None
    conf_threshold: float = 0.5
    top_k: int = 10
    iou_threshold: float = 0.45
    class_name_overrides: Optional[Dict[int, str]] = None


def _to_numpy(values) -> np.ndarray:
    return values.cpu().numpy() if hasattr(values, "cpu") else np.asarray(values)


class UltralyticsCpuBackend(InferenceBackend):
    def __init__(self, cfg: CpuYoloConfig):
        self.cfg = cfg
        self.profile = BackendProfile(
            name=cfg.name or Path(cfg.model).stem,
            conf_threshold=cfg.conf_threshold,
            top_k=cfg.top_k,
        )

        if not Path(cfg.model).is_file():
            raise ModelLoadError(f"Model artifact not found: {cfg.model}")

        try:
            from ultralytics import YOLO  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ModelLoadError(
                "Ultralytics is not installed. Install with `pip install ultralytics`."
            ) from e

        try:
            self._model = YOLO(cfg.model)
        except Exception as e:
            raise ModelLoadError(f"Failed to load {cfg.model}: {e}") from e

        logging.info(f"Ultralytics model loaded: {cfg.model}")

    def infer(self, frame: FrameData) -> InferenceOutput:
        try:
            results = self._model.predict(
                source=frame.upright(),
                conf=self.cfg.conf_threshold,
                iou=self.cfg.iou_threshold,
                verbose=False,
            )
        except Exception as e:
            raise InferenceError(f"{self.profile.name} prediction failed: {e}") from e

        if not results:
            return []

        r0 = results[0]
        boxes = getattr(r0, "boxes", None)
        if boxes is None:
            raw_count = sum(
                1 for r in results
                if any(getattr(r, attr, None) is not None for attr in _OTHER_HEADS)
            )
            return UnrecognizedOutput(
                raw_count=raw_count,
                description=f"{type(r0).__name__} without boxes",
            )

        names = getattr(r0, "names", None) or {}
        overrides = self.cfg.class_name_overrides or {}

        try:
            xyxy = _to_numpy(boxes.xyxy)
            conf = _to_numpy(boxes.conf)
            cls = _to_numpy(boxes.cls)
        except AttributeError:
            return UnrecognizedOutput(raw_count=len(boxes), description="boxes without xyxy/conf/cls")

        out: List[Observation] = []
        for (x1, y1, x2, y2), c, k in zip(xyxy, conf, cls):
            class_id = int(k)
            label = overrides.get(class_id) or names.get(class_id) or str(class_id)
            out.append(
                Observation.from_xyxy(
                    float(x1),
                    float(y1),
                    float(x2),
                    float(y2),
                    confidence=min(max(float(c), 0.0), 1.0),
                    label=label,
                    class_id=class_id,
                )
            )

        return out
