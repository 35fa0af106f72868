"""
Smoke tests for typed models and adapters.
"""

import time
from pathlib import Path

import numpy as np
import pytest

from models.frame import FrameData, rotate_frame
from models.detection import BoundingBox, Observation
from models.result import DetectionResult, RecordingState, ErrorNotice
from models.config import (
    Config,
    CameraConfig,
    BackendConfig,
    DetectionConfig,
    RecordingConfig,
)


class TestBoundingBox:
    def test_properties(self):
        bbox = BoundingBox(x1=100, y1=100, x2=200, y2=150)
        assert bbox.width == 100
        assert bbox.height == 50

    def test_as_tuple(self):
        bbox = BoundingBox(x1=10.5, y1=20.5, x2=30.5, y2=40.5)
        assert bbox.as_tuple() == (10.5, 20.5, 30.5, 40.5)


class TestObservation:
    def test_from_xyxy(self):
        obs = Observation.from_xyxy(10, 20, 30, 40, confidence=0.9, label="cat", class_id=15)
        assert obs.bbox.x1 == 10
        assert obs.confidence == 0.9
        assert obs.label == "cat"
        assert obs.class_id == 15

    def test_label_falls_back_to_class_id(self):
        obs = Observation.from_xyxy(0, 0, 1, 1, confidence=0.5, class_id=7)
        assert obs.label == "7"

    def test_label_falls_back_to_object(self):
        obs = Observation.from_xyxy(0, 0, 1, 1, confidence=0.5)
        assert obs.label == "object"

    @pytest.mark.parametrize("confidence", [-0.01, 1.01])
    def test_confidence_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            Observation.from_xyxy(0, 0, 1, 1, confidence=confidence, label="cat")


class TestFrameData:
    def test_from_numpy(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        ts = time.monotonic()
        fd = FrameData.from_numpy(frame, timestamp=ts, frame_index=42)

        assert fd.width == 640
        assert fd.height == 480
        assert fd.frame_index == 42
        assert fd.size == (640, 480)
        assert fd.orientation == 0

    def test_invalid_orientation(self):
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        with pytest.raises(ValueError):
            FrameData.from_numpy(frame, timestamp=0.0, orientation=45)

    def test_upright_rotates_clockwise(self):
        frame = np.zeros((2, 3, 3), dtype=np.uint8)
        frame[0, 0] = 255  # top-left
        fd = FrameData.from_numpy(frame, timestamp=0.0, orientation=90)

        upright = fd.upright()
        assert upright.shape == (3, 2, 3)
        # top-left moves to top-right after a clockwise quarter turn
        assert upright[0, 1, 0] == 255

    def test_upright_no_rotation_is_same_buffer(self):
        frame = np.zeros((2, 3, 3), dtype=np.uint8)
        fd = FrameData.from_numpy(frame, timestamp=0.0)
        assert fd.upright() is frame

    def test_rotate_180(self):
        frame = np.arange(6, dtype=np.uint8).reshape(2, 3)
        np.testing.assert_array_equal(rotate_frame(frame, 180), frame[::-1, ::-1])


class TestResults:
    def test_detection_result_to_dict(self):
        result = DetectionResult(entries=("cat (91%)",), latency_ms=12.34567, backend="yolov8s", frame_index=3)
        d = result.to_dict()
        assert d["entries"] == ["cat (91%)"]
        assert d["latency_ms"] == 12.346
        assert d["backend"] == "yolov8s"
        assert d["degraded"] is False

    def test_recording_state_to_dict(self):
        assert RecordingState(True).to_dict() == {"is_recording": True, "finished_output_path": None}
        d = RecordingState(False, Path("/tmp/a.mp4")).to_dict()
        assert d["finished_output_path"] == str(Path("/tmp/a.mp4"))

    def test_error_notice_has_timestamp(self):
        notice = ErrorNotice(kind="recording", message="boom")
        assert notice.timestamp > 0
        assert notice.path is None


class TestConfig:
    def test_defaults(self):
        cfg = Config.from_dict({})
        assert cfg.camera.device_id == 0
        assert cfg.detection.frame_interval == 1
        assert [c.name for c in cfg.detection.candidates] == ["yolov8s", "yolov8n"]
        primary, baseline = cfg.detection.candidates
        assert (primary.conf_threshold, primary.top_k) == (0.5, 10)
        assert (baseline.conf_threshold, baseline.top_k) == (0.3, 5)
        assert cfg.recording.extension == "mp4"
        assert cfg.log_level == "INFO"

    def test_from_dict(self, valid_config):
        cfg = Config.from_dict(valid_config)
        assert cfg.camera.resolution == [1280, 720]
        assert cfg.detection.candidates[1].kind == "onnx"
        assert cfg.detection.candidates[1].top_k == 5
        assert cfg.recording.codec == "mp4v"

    def test_backend_name_defaults_to_model(self):
        cfg = BackendConfig.from_dict({"model": "custom.pt"})
        assert cfg.name == "custom.pt"
        assert cfg.kind == "ultralytics"

    def test_extension_strips_dot(self):
        assert RecordingConfig.from_dict({"extension": ".avi"}).extension == "avi"

    def test_roundtrip(self, valid_config):
        back = Config.from_dict(valid_config).to_dict()
        again = Config.from_dict(back)
        assert again == Config.from_dict(valid_config)
        assert back["detection"]["candidates"][0]["model"] == "yolov8s.pt"
        assert "labels" not in back["detection"]["candidates"][0]

    def test_camera_roundtrip(self):
        cam = CameraConfig(device_id="rtsp://cam/stream", orientation=90)
        assert CameraConfig.from_dict(cam.to_dict()) == cam

    def test_detection_empty_candidates_uses_defaults(self):
        cfg = DetectionConfig.from_dict({"candidates": []})
        assert len(cfg.candidates) == 2
