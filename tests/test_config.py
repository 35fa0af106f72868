"""
Smoke tests for configuration loading and validation.
"""

import pytest

from main import load_config, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "detection", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error

    def test_recording_section_optional(self, valid_config):
        del valid_config["recording"]

        assert validate_config(valid_config) == (True, None)

    def test_invalid_device_id_type(self, valid_config):
        valid_config["camera"]["device_id"] = [1, 2, 3]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error

    def test_negative_device_id(self, valid_config):
        valid_config["camera"]["device_id"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error

    def test_string_device_id_valid(self, valid_config):
        """String device_id (RTSP URL or file path) is valid."""
        valid_config["camera"]["device_id"] = "rtsp://192.168.1.1/stream"

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    @pytest.mark.parametrize("resolution", [1920, [1920], [1920, 0]])
    def test_invalid_resolution(self, valid_config, resolution):
        valid_config["camera"]["resolution"] = resolution

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error

    def test_invalid_fps(self, valid_config):
        valid_config["camera"]["fps"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "fps" in error

    def test_invalid_camera_backend(self, valid_config):
        valid_config["camera"]["backend"] = "picamera2"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "backend" in error

    def test_invalid_camera_orientation(self, valid_config):
        valid_config["camera"]["orientation"] = 45

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "orientation" in error

    def test_candidates_must_be_non_empty(self, valid_config):
        valid_config["detection"]["candidates"] = []

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "candidates" in error

    def test_candidates_optional(self, valid_config):
        del valid_config["detection"]["candidates"]

        assert validate_config(valid_config) == (True, None)

    def test_candidate_requires_model(self, valid_config):
        del valid_config["detection"]["candidates"][0]["model"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "candidates[0].model" in error

    def test_unknown_candidate_kind(self, valid_config):
        valid_config["detection"]["candidates"][1]["kind"] = "tensorrt"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "candidates[1].kind" in error

    @pytest.mark.parametrize("threshold", [1.0, -0.1, "high"])
    def test_invalid_conf_threshold(self, valid_config, threshold):
        valid_config["detection"]["candidates"][0]["conf_threshold"] = threshold

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "conf_threshold" in error

    def test_invalid_top_k(self, valid_config):
        valid_config["detection"]["candidates"][0]["top_k"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "top_k" in error

    def test_invalid_frame_interval(self, valid_config):
        valid_config["detection"]["frame_interval"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "frame_interval" in error

    def test_invalid_recording_codec(self, valid_config):
        valid_config["recording"]["codec"] = "h264-high"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "codec" in error

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Config loads from default.yaml when only it exists."""
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["camera"]["backend"] == "opencv"
        assert config["camera"]["resolution"] == [640, 480]
        assert len(config["detection"]["candidates"]) == 2

    def test_local_overrides_merge(self, temp_config_dir):
        """Local config.yaml overrides default.yaml."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
camera:
  resolution: [1920, 1080]
  fps: 60
""")

        config = load_config(str(config_yaml))

        assert config["camera"]["resolution"] == [1920, 1080]
        assert config["camera"]["fps"] == 60
        assert config["camera"]["device_id"] == 0

    def test_lists_are_replaced_not_merged(self, temp_config_dir):
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
detection:
  candidates:
    - name: "custom"
      model: "custom.onnx"
      kind: "onnx"
""")

        config = load_config(str(config_yaml))

        assert [c["name"] for c in config["detection"]["candidates"]] == ["custom"]
        assert config["detection"]["models_dir"] == "models"

    def test_explicit_path_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("log_level: WARNING\n")
        explicit = temp_config_dir / "bench.yaml"
        explicit.write_text("log_level: DEBUG\ncamera:\n  device_id: clip.mp4\n")

        config = load_config(str(explicit))

        assert config["log_level"] == "DEBUG"
        assert config["camera"]["device_id"] == "clip.mp4"
        assert config["camera"]["fps"] == 30

    def test_invalid_yaml_exits(self, temp_config_dir):
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("camera: [unclosed\n")

        with pytest.raises(SystemExit):
            load_config(str(config_yaml))

    def test_loaded_default_is_valid(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))
        assert validate_config(config) == (True, None)
