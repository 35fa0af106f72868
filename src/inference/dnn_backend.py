"""
OpenCV DNN backend for YOLOv8-layout ONNX exports.

Runs without Ultralytics/torch, which makes it the generic baseline on
machines where only OpenCV is available. The expected output tensor is
(1, 4 + C, N) or (1, N, 4 + C): centre-x, centre-y, width, height followed
by C per-class scores. Any other layout is reported as UnrecognizedOutput.

With a labels file C is known and both layouts are told apart exactly.
Without one the shorter axis is taken as 4 + C, which holds for real
exports (N is in the thousands) but misreads a row-major output with
fewer boxes than channels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2
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

# Keeps boxes of different classes apart during a single NMS pass.
_CLASS_OFFSET = 8192.0


@dataclass(frozen=True)
class OnnxDnnConfig:
    model: str
    name: Optional[str] = None
    conf_threshold: float = 0.3
    top_k: int = 5
    iou_threshold: float = 0.45
    input_size: int = 640
    labels: Optional[str] = None


def load_labels(path: str) -> List[str]:
    """Read one label per line, skipping blank lines."""
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def letterbox(image: np.ndarray, size: int) -> Tuple[np.ndarray, float, int, int]:
    """
    Resize keeping aspect ratio and pad to a size x size square.

    Returns:
        (blob, scale, pad_x, pad_y) where blob is NCHW float32 RGB in [0, 1].
    """
    h, w = image.shape[:2]
    scale = min(size / h, size / w)
    new_w, new_h = int(round(w * scale)), int(round(h * scale))
    resized = cv2.resize(image, (new_w, new_h))

    padded = np.full((size, size, 3), 114, dtype=np.uint8)
    pad_x, pad_y = (size - new_w) // 2, (size - new_h) // 2
    padded[pad_y:pad_y + new_h, pad_x:pad_x + new_w] = resized

    blob = cv2.dnn.blobFromImage(padded, scalefactor=1.0 / 255.0, size=(size, size), swapRB=True)
    return blob, scale, pad_x, pad_y


class OnnxDnnBackend(InferenceBackend):
    def __init__(self, cfg: OnnxDnnConfig):
        self.cfg = cfg
        self.profile = BackendProfile(
            name=cfg.name or Path(cfg.model).stem,
            conf_threshold=cfg.conf_threshold,
            top_k=cfg.top_k,
        )

        if not Path(cfg.model).is_file():
            raise ModelLoadError(f"Model artifact not found: {cfg.model}")

        self._labels: Optional[List[str]] = None
        if cfg.labels:
            try:
                self._labels = load_labels(cfg.labels)
            except (OSError, UnicodeDecodeError) as e:
                raise ModelLoadError(f"Failed to read labels {cfg.labels}: {e}") from e

        try:
            self._net = cv2.dnn.readNetFromONNX(cfg.model)
        except cv2.error as e:
            raise ModelLoadError(f"Failed to load {cfg.model}: {e}") from e
        if self._net.empty():
            raise ModelLoadError(f"Failed to load {cfg.model}: network is empty")

        logging.info(f"ONNX model loaded via OpenCV DNN: {cfg.model}")

    def infer(self, frame: FrameData) -> InferenceOutput:
        image = frame.upright()
        blob, scale, pad_x, pad_y = letterbox(image, self.cfg.input_size)
        try:
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as e:
            raise InferenceError(f"{self.profile.name} forward pass failed: {e}") from e

        return self._parse(np.asarray(output), scale, pad_x, pad_y, image.shape[:2])

    def _parse(
        self,
        output: np.ndarray,
        scale: float,
        pad_x: int,
        pad_y: int,
        image_hw: Sequence[int],
    ) -> InferenceOutput:
        data = self._as_rows(output)
        if data is None:
            return UnrecognizedOutput(
                raw_count=int(output.size),
                description=f"unexpected output shape {tuple(output.shape)}",
            )
        if data.shape[0] == 0:
            return []

        class_scores = data[:, 4:]
        class_ids = np.argmax(class_scores, axis=1)
        scores = class_scores[np.arange(len(class_ids)), class_ids]

        keep = scores > self.cfg.conf_threshold
        if not np.any(keep):
            return []
        boxes, scores, class_ids = data[keep, :4], scores[keep], class_ids[keep]

        # centre-xywh in letterbox space -> xyxy in frame space
        cx, cy, bw, bh = boxes.T
        x1 = (cx - bw / 2 - pad_x) / scale
        y1 = (cy - bh / 2 - pad_y) / scale
        x2 = (cx + bw / 2 - pad_x) / scale
        y2 = (cy + bh / 2 - pad_y) / scale

        img_h, img_w = image_hw
        x1, x2 = np.clip(x1, 0, img_w), np.clip(x2, 0, img_w)
        y1, y2 = np.clip(y1, 0, img_h), np.clip(y2, 0, img_h)

        nms_boxes = [
            [float(a + k * _CLASS_OFFSET), float(b), float(c - a), float(d - b)]
            for a, b, c, d, k in zip(x1, y1, x2, y2, class_ids)
        ]
        indices = cv2.dnn.NMSBoxes(
            nms_boxes,
            [float(s) for s in scores],
            self.cfg.conf_threshold,
            self.cfg.iou_threshold,
        )

        out: List[Observation] = []
        for i in np.array(indices, dtype=int).flatten():
            class_id = int(class_ids[i])
            out.append(
                Observation.from_xyxy(
                    float(x1[i]),
                    float(y1[i]),
                    float(x2[i]),
                    float(y2[i]),
                    confidence=min(max(float(scores[i]), 0.0), 1.0),
                    label=self._label_for(class_id),
                    class_id=class_id,
                )
            )
        return out

    def _as_rows(self, output: np.ndarray) -> Optional[np.ndarray]:
        """
        Return an (N, 4 + C) view of the output, or None when the layout is unknown.

        Without labels the shorter axis is assumed to be 4 + C.
        """
        if output.ndim != 3 or output.shape[0] != 1:
            return None
        data = output[0]
        rows, cols = data.shape

        if self._labels is not None:
            expected = 4 + len(self._labels)
            if rows == expected and cols != expected:
                return data.T
            if cols == expected:
                return data
            return None

        if rows < cols and rows >= 5:
            return data.T
        if cols >= 5:
            return data
        return None

    def _label_for(self, class_id: int) -> str:
        if self._labels is not None and 0 <= class_id < len(self._labels):
            return self._labels[class_id]
        return str(class_id)
