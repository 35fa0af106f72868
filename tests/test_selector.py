"""
Tests for model selection and fallback.
"""

import logging
from unittest.mock import patch

import pytest

from inference.backend import BackendProfile, ModelLoadError
from inference.cpu_backend import UltralyticsCpuBackend
from inference.dnn_backend import OnnxDnnBackend
from inference.selector import (
    BackendCandidate,
    ModelSelectionError,
    ModelSelector,
    create_backend,
    create_selector_from_config,
)
from models.config import BackendConfig, DetectionConfig


class StubBackend:
    def __init__(self, name):
        self.profile = BackendProfile(name=name)

    def infer(self, frame):
        return []


def failing(message):
    def factory():
        raise ModelLoadError(message)
    return factory


class TestModelSelector:
    def test_primary_wins(self):
        selector = ModelSelector([
            BackendCandidate("primary", lambda: StubBackend("primary")),
            BackendCandidate("baseline", lambda: StubBackend("baseline")),
        ])
        assert selector.select().profile.name == "primary"

    def test_falls_back_to_baseline(self, caplog):
        selector = ModelSelector([
            BackendCandidate("primary", failing("weights missing")),
            BackendCandidate("baseline", lambda: StubBackend("baseline")),
        ])

        with caplog.at_level(logging.INFO):
            backend = selector.select()

        assert backend.profile.name == "baseline"
        assert "primary" in caplog.text
        assert "fallback" in caplog.text

    def test_all_failing_lists_every_attempt(self):
        selector = ModelSelector([
            BackendCandidate("primary", failing("weights missing")),
            BackendCandidate("baseline", failing("corrupt")),
        ])

        with pytest.raises(ModelSelectionError) as exc_info:
            selector.select()

        err = exc_info.value
        assert [name for name, _ in err.failures] == ["primary", "baseline"]
        assert "weights missing" in str(err)
        assert "corrupt" in str(err)

    def test_no_candidates(self):
        with pytest.raises(ModelSelectionError, match="no candidates"):
            ModelSelector([]).select()

    def test_later_candidates_not_loaded(self):
        loaded = []

        def factory(name):
            def build():
                loaded.append(name)
                return StubBackend(name)
            return build

        ModelSelector([
            BackendCandidate("primary", factory("primary")),
            BackendCandidate("baseline", factory("baseline")),
        ]).select()

        assert loaded == ["primary"]

    def test_unexpected_error_propagates(self):
        def broken():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            ModelSelector([BackendCandidate("primary", broken)]).select()


class TestCreateBackend:
    def test_unknown_kind(self):
        with pytest.raises(ModelLoadError, match="Unknown backend kind"):
            create_backend(BackendConfig(name="x", kind="tensorrt", model="x.engine"))

    def test_ultralytics_resolves_models_dir(self, tmp_path):
        (tmp_path / "yolov8s.pt").write_bytes(b"weights")
        with patch("ultralytics.YOLO") as yolo:
            backend = create_backend(
                BackendConfig(name="primary", model="yolov8s.pt", conf_threshold=0.5, top_k=10),
                models_dir=str(tmp_path),
            )
        assert isinstance(backend, UltralyticsCpuBackend)
        assert backend.profile.name == "primary"
        yolo.assert_called_once_with(str(tmp_path / "yolov8s.pt"))

    def test_onnx_resolves_labels_in_models_dir(self, tmp_path):
        (tmp_path / "yolov8n.onnx").write_bytes(b"onnx")
        (tmp_path / "coco.txt").write_text("person\n")
        with patch("inference.dnn_backend.cv2.dnn.readNetFromONNX") as reader:
            reader.return_value.empty.return_value = False
            backend = create_backend(
                BackendConfig(name="baseline", kind="onnx", model="yolov8n.onnx", labels="coco.txt"),
                models_dir=str(tmp_path),
            )
        assert isinstance(backend, OnnxDnnBackend)
        assert backend.cfg.labels == str(tmp_path / "coco.txt")

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(ModelLoadError):
            create_backend(BackendConfig(name="primary", model="absent.pt"), models_dir=str(tmp_path))


class TestSelectorFromConfig:
    def test_missing_primary_falls_back(self, tmp_path):
        (tmp_path / "yolov8n.pt").write_bytes(b"weights")
        detection = DetectionConfig(models_dir=str(tmp_path))

        with patch("ultralytics.YOLO"):
            backend = create_selector_from_config(detection).select()

        assert backend.profile.name == "yolov8n"
        assert backend.profile.conf_threshold == 0.3
        assert backend.profile.top_k == 5

    def test_nothing_available(self, tmp_path):
        detection = DetectionConfig(models_dir=str(tmp_path))
        with pytest.raises(ModelSelectionError) as exc_info:
            create_selector_from_config(detection).select()
        assert len(exc_info.value.failures) == 2

    def test_unreadable_labels_fall_back(self, tmp_path):
        (tmp_path / "custom.onnx").write_bytes(b"onnx")
        (tmp_path / "custom.txt").write_bytes(b"\xff\xfe\x00\x81")
        (tmp_path / "yolov8n.pt").write_bytes(b"weights")
        detection = DetectionConfig(
            models_dir=str(tmp_path),
            candidates=[
                BackendConfig(name="custom", kind="onnx", model="custom.onnx", labels="custom.txt"),
                BackendConfig(name="yolov8n", model="yolov8n.pt", conf_threshold=0.3, top_k=5),
            ],
        )

        with patch("inference.dnn_backend.cv2.dnn.readNetFromONNX"), patch("ultralytics.YOLO"):
            backend = create_selector_from_config(detection).select()

        assert backend.profile.name == "yolov8n"
