"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import time

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.frame import FrameData  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30

detection:
  models_dir: "models"
  candidates:
    - name: "primary"
      kind: "ultralytics"
      model: "yolov8s.pt"
      conf_threshold: 0.5
      top_k: 10
    - name: "baseline"
      kind: "ultralytics"
      model: "yolov8n.pt"
      conf_threshold: 0.3
      top_k: 5

recording:
  output_dir: "output/video"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
            "orientation": 0,
        },
        "detection": {
            "models_dir": "models",
            "frame_interval": 1,
            "candidates": [
                {"name": "primary", "kind": "ultralytics", "model": "yolov8s.pt",
                 "conf_threshold": 0.5, "top_k": 10},
                {"name": "baseline", "kind": "onnx", "model": "yolov8n.onnx",
                 "conf_threshold": 0.3, "top_k": 5},
            ],
        },
        "recording": {
            "output_dir": "output/video",
            "extension": "mp4",
            "codec": "mp4v",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def make_frame():
    """Factory for small black frames."""
    def _make(index: int = 0, width: int = 64, height: int = 48, orientation: int = 0) -> FrameData:
        return FrameData.from_numpy(
            np.zeros((height, width, 3), dtype=np.uint8),
            timestamp=time.monotonic(),
            orientation=orientation,
            frame_index=index,
            source="test",
        )
    return _make
