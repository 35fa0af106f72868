"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    orientation: int = 0
    discard_late_frames: bool = True
    swap_rb: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            orientation=d.get("orientation", 0) or 0,
            discard_late_frames=d.get("discard_late_frames", True),
            swap_rb=d.get("swap_rb", False),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "orientation": self.orientation,
            "discard_late_frames": self.discard_late_frames,
            "swap_rb": self.swap_rb,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class BackendConfig:
    """One model candidate tried by the model selector."""
    name: str
    kind: str = "ultralytics"
    model: str = ""
    conf_threshold: float = 0.5
    top_k: int = 10
    iou_threshold: float = 0.45
    input_size: int = 640
    labels: Optional[str] = None
    class_name_overrides: Optional[Dict[int, str]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BackendConfig":
        return cls(
            name=d.get("name") or d.get("model", ""),
            kind=d.get("kind", "ultralytics"),
            model=d.get("model", ""),
            conf_threshold=float(d.get("conf_threshold", 0.5)),
            top_k=int(d.get("top_k", 10)),
            iou_threshold=float(d.get("iou_threshold", 0.45)),
            input_size=int(d.get("input_size", 640)),
            labels=d.get("labels"),
            class_name_overrides=d.get("class_name_overrides"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind,
            "model": self.model,
            "conf_threshold": self.conf_threshold,
            "top_k": self.top_k,
            "iou_threshold": self.iou_threshold,
            "input_size": self.input_size,
        }
        if self.labels is not None:
            d["labels"] = self.labels
        if self.class_name_overrides is not None:
            d["class_name_overrides"] = self.class_name_overrides
        return d


def _default_candidates() -> List[BackendConfig]:
    return [
        BackendConfig(name="yolov8s", model="yolov8s.pt", conf_threshold=0.5, top_k=10),
        BackendConfig(name="yolov8n", model="yolov8n.pt", conf_threshold=0.3, top_k=5),
    ]


@dataclass
class DetectionConfig:
    """Detection configuration: model storage and ordered candidates."""
    models_dir: str = "models"
    frame_interval: int = 1
    candidates: List[BackendConfig] = field(default_factory=_default_candidates)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        raw_candidates = d.get("candidates")
        candidates = (
            [BackendConfig.from_dict(c) for c in raw_candidates]
            if raw_candidates
            else _default_candidates()
        )
        return cls(
            models_dir=d.get("models_dir", "models"),
            frame_interval=int(d.get("frame_interval", 1)),
            candidates=candidates,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "models_dir": self.models_dir,
            "frame_interval": self.frame_interval,
            "candidates": [c.to_dict() for c in self.candidates],
        }


@dataclass
class RecordingConfig:
    """Video recording configuration."""
    output_dir: str = "output/video"
    extension: str = "mp4"
    codec: str = "mp4v"
    fps: Optional[int] = None
    orientation: int = 0
    stabilization: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RecordingConfig":
        return cls(
            output_dir=d.get("output_dir", "output/video"),
            extension=str(d.get("extension", "mp4")).lstrip("."),
            codec=d.get("codec", "mp4v"),
            fps=d.get("fps"),
            orientation=d.get("orientation", 0) or 0,
            stabilization=d.get("stabilization", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": self.output_dir,
            "extension": self.extension,
            "codec": self.codec,
            "fps": self.fps,
            "orientation": self.orientation,
            "stabilization": self.stabilization,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    pipeline: Dict[str, Any] = field(default_factory=dict)
    log_path: str = "logs/live_detection.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            recording=RecordingConfig.from_dict(d.get("recording", {}) or {}),
            pipeline=dict(d.get("pipeline", {}) or {}),
            log_path=d.get("log_path", "logs/live_detection.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "recording": self.recording.to_dict(),
            "pipeline": dict(self.pipeline),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
