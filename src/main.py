"""
Live detection monitor.

Captures a video feed, runs object detection on it and publishes the top
labeled results, while an independent recorder can save the same feed.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Enable visual display for debugging ('r' toggles recording, 'q' quits)
    --record: Start recording as soon as the camera is open
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import yaml

from inference.selector import ModelSelectionError, create_selector_from_config
from models.config import Config
from models.frame import VALID_ORIENTATIONS
from ops.logging import setup_logging
from pipeline.detection import DetectionPipeline
from pipeline.engine import create_engine_from_config
from recording.controller import RecordingController
from runtime.context import RuntimeContext
from runtime.sink import ResultHub, log_subscriber

BACKEND_KINDS = ("ultralytics", "onnx")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    config_dir = os.path.dirname(config_path)
    base_path = os.path.join(config_dir, "default.yaml")
    local_path = os.path.join(config_dir, "config.yaml")

    try:
        merged: Dict[str, Any] = {}
        if os.path.exists(base_path):
            merged = _read_yaml(base_path)
        if os.path.exists(local_path):
            merged = _deep_merge(merged, _read_yaml(local_path))

        explicit = os.path.abspath(config_path)
        if os.path.exists(config_path) and explicit not in (
            os.path.abspath(local_path),
            os.path.abspath(base_path),
        ):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _validate_candidate(index: int, cand: Any) -> Optional[str]:
    where = f"detection.candidates[{index}]"
    if not isinstance(cand, dict):
        return f"{where} must be a mapping"
    if not cand.get("model") or not isinstance(cand["model"], str):
        return f"{where}.model must be a non-empty string"
    kind = cand.get("kind", "ultralytics")
    if kind not in BACKEND_KINDS:
        return f"{where}.kind must be one of: {', '.join(BACKEND_KINDS)}"
    conf = cand.get("conf_threshold", 0.5)
    if not isinstance(conf, (int, float)) or not (0 <= conf < 1):
        return f"{where}.conf_threshold must be a number in [0, 1)"
    top_k = cand.get("top_k", 10)
    if not isinstance(top_k, int) or top_k < 1:
        return f"{where}.top_k must be a positive integer"
    iou = cand.get("iou_threshold", 0.45)
    if not isinstance(iou, (int, float)) or not (0 < iou <= 1):
        return f"{where}.iou_threshold must be between 0 and 1"
    return None


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (URL/path)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"

    if 'resolution' not in camera:
        return False, "Missing camera.resolution"
    if not isinstance(camera['resolution'], list) or len(camera['resolution']) != 2:
        return False, "camera.resolution must be a list of [width, height]"
    if not all(isinstance(x, int) and x > 0 for x in camera['resolution']):
        return False, "camera.resolution values must be positive integers"

    if 'fps' not in camera:
        return False, "Missing camera.fps"
    if not isinstance(camera['fps'], int) or camera['fps'] <= 0:
        return False, "camera.fps must be a positive integer"

    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be 'opencv'"
    if camera.get('orientation', 0) not in VALID_ORIENTATIONS:
        return False, f"camera.orientation must be one of {VALID_ORIENTATIONS}"

    # Detection
    detection = config.get('detection') or {}
    candidates = detection.get('candidates')
    if candidates is not None:
        if not isinstance(candidates, list) or not candidates:
            return False, "detection.candidates must be a non-empty list"
        for i, cand in enumerate(candidates):
            error = _validate_candidate(i, cand)
            if error:
                return False, error
    frame_interval = detection.get('frame_interval', 1)
    if not isinstance(frame_interval, int) or frame_interval < 1:
        return False, "detection.frame_interval must be a positive integer"

    # Recording (optional)
    recording = config.get('recording') or {}
    if recording.get('orientation', 0) not in VALID_ORIENTATIONS:
        return False, f"recording.orientation must be one of {VALID_ORIENTATIONS}"
    if 'codec' in recording:
        if not isinstance(recording['codec'], str) or len(recording['codec']) != 4:
            return False, "recording.codec must be a four character code"
    if 'fps' in recording and recording['fps'] is not None:
        if not isinstance(recording['fps'], (int, float)) or recording['fps'] <= 0:
            return False, "recording.fps must be a positive number"

    # Logging
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Live Detection Monitor')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Enable visual display')
    parser.add_argument('--record', action='store_true',
                        help='Start recording at launch')
    args = parser.parse_args()

    config = load_config(args.config)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    typed = Config.from_dict(config)

    logging.info("Starting Live Detection Monitor")

    results = ResultHub(threaded=True)
    results.subscribe(log_subscriber)

    try:
        backend = create_selector_from_config(typed.detection).select()
    except ModelSelectionError as e:
        logging.error(f"Model selection failed: {e}")
        results.close()
        sys.exit(1)

    detector = DetectionPipeline(
        backend,
        results,
        frame_interval=typed.detection.frame_interval,
    )
    width, height = typed.camera.resolution
    recorder = RecordingController(
        results,
        typed.recording,
        frame_size=(width, height),
        fps=typed.camera.fps,
    )

    ctx = RuntimeContext(
        config=config,
        results=results,
        detector=detector,
        recorder=recorder,
    )

    try:
        engine = create_engine_from_config(
            config=config,
            ctx=ctx,
            display=args.display,
            record=args.record,
        )
        engine.run()
    finally:
        results.close()

    logging.info("Live Detection Monitor stopped")


if __name__ == "__main__":
    main()
