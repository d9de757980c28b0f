"""
Configuration loading/saving.

Pure functions operating on dataclasses.
- TOML for run configuration
- OpenCV FileStorage (YAML/XML) for ArUco detector parameters
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import cv2
import rtoml

from .exceptions import ConfigError, DetectorParametersError
from .types import (
    DETECTOR_PARAMETER_KEYS,
    BoardGeometry,
    CameraModel,
    CaptureConfig,
    DetectorParameters,
    PatternType,
)


# ============================================================================
# Defaults
# ============================================================================


def default_intrinsic_config() -> CaptureConfig:
    """
    Defaults for a single-camera run: 8x12 chessboard, 7 mm squares.
    """
    return CaptureConfig(
        board=BoardGeometry(
            pattern=PatternType.CHESSBOARD,
            width=8,
            height=12,
            square_size=7.0,
            marker_size=0.02,
        ),
        input_dir=Path("calibrationdata"),
        extension=".png",
        prefix_left="left-",
        camera_model=CameraModel.MEI,
        camera_name_left="camera",
    )


def default_stereo_config() -> CaptureConfig:
    """
    Defaults for a stereo run: 9x6 chessboard, 120 mm squares, .bmp images.
    """
    return CaptureConfig(
        board=BoardGeometry(
            pattern=PatternType.CHESSBOARD,
            width=9,
            height=6,
            square_size=120.0,
            marker_size=0.02,
        ),
        input_dir=Path("images"),
        extension=".bmp",
        prefix_left="left",
        prefix_right="right",
        camera_model=CameraModel.MEI,
        camera_name_left="camera_left",
        camera_name_right="camera_right",
    )


# ============================================================================
# TOML Run Configuration
# ============================================================================


def parse_capture_config(data: dict[str, Any], defaults: CaptureConfig) -> CaptureConfig:
    """
    Build a CaptureConfig from parsed TOML tables, falling back to defaults.
    """
    board_data = data.get("board", {})
    input_data = data.get("input", {})
    camera_data = data.get("camera", {})
    detector_data = data.get("detector", {})
    output_data = data.get("output", {})

    base = defaults.board
    pattern = board_data.get("pattern")
    board = BoardGeometry(
        pattern=PatternType.from_name(pattern) if pattern else base.pattern,
        width=board_data.get("width", base.width),
        height=board_data.get("height", base.height),
        square_size=board_data.get("square_size", base.square_size),
        marker_size=board_data.get("marker_size", base.marker_size),
        dictionary=board_data.get("dictionary", base.dictionary),
        legacy_pattern=board_data.get("legacy_pattern", base.legacy_pattern),
    )

    model = camera_data.get("model")
    params = detector_data.get("params")

    return CaptureConfig(
        board=board,
        input_dir=Path(input_data.get("directory", defaults.input_dir)),
        extension=input_data.get("extension", defaults.extension),
        prefix_left=input_data.get("prefix_left", input_data.get("prefix", defaults.prefix_left)),
        prefix_right=input_data.get("prefix_right", defaults.prefix_right),
        camera_model=CameraModel.from_name(model) if model else defaults.camera_model,
        camera_name_left=camera_data.get("name_left", camera_data.get("name", defaults.camera_name_left)),
        camera_name_right=camera_data.get("name_right", defaults.camera_name_right),
        output_dir=Path(output_data.get("directory", defaults.output_dir)),
        detector_params=Path(params) if params else defaults.detector_params,
        refine_markers=detector_data.get("refine_markers", defaults.refine_markers),
        minimum_samples=detector_data.get("minimum_samples", defaults.minimum_samples),
        view_results=output_data.get("view_results", defaults.view_results),
        verbose=output_data.get("verbose", defaults.verbose),
    )


def load_capture_config(path: Path, defaults: CaptureConfig | None = None) -> CaptureConfig:
    """
    Load a run configuration from a TOML file.

    Args:
        path: Path to the TOML file
        defaults: Values for keys the file omits (mono defaults if None)

    Returns:
        CaptureConfig dataclass

    Raises:
        ConfigError: If the file cannot be read or parsed, or names an
            unknown pattern or camera model
    """
    try:
        data = rtoml.load(Path(path))
    except (OSError, rtoml.TomlParsingError) as e:
        raise ConfigError(f"Cannot load configuration {path}: {e}") from e

    try:
        return parse_capture_config(data, defaults or default_intrinsic_config())
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration {path}: {e}") from e


def save_capture_config(config: CaptureConfig, path: Path) -> None:
    """
    Save a run configuration to a TOML file.

    Args:
        config: CaptureConfig dataclass
        path: Path to save the TOML file
    """
    board = config.board
    data = {
        "board": {
            "pattern": board.pattern.value,
            "width": board.width,
            "height": board.height,
            "square_size": board.square_size,
            "marker_size": board.marker_size,
            "dictionary": board.dictionary,
            "legacy_pattern": board.legacy_pattern,
        },
        "input": {
            "directory": str(config.input_dir),
            "extension": config.extension,
            "prefix_left": config.prefix_left,
            "prefix_right": config.prefix_right,
        },
        "camera": {
            "model": config.camera_model.value,
            "name_left": config.camera_name_left,
            "name_right": config.camera_name_right,
        },
        "detector": {
            "refine_markers": config.refine_markers,
            "minimum_samples": config.minimum_samples,
        },
        "output": {
            "directory": str(config.output_dir),
            "view_results": config.view_results,
            "verbose": config.verbose,
        },
    }
    if config.detector_params is not None:
        data["detector"]["params"] = str(config.detector_params)

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        rtoml.dump(data, f)


def apply_overrides(config: CaptureConfig, **overrides: Any) -> CaptureConfig:
    """
    Return a copy with every non-None override applied.

    Board fields (pattern, width, height, square_size, marker_size,
    dictionary) are routed into the nested BoardGeometry.
    """
    board_fields = {"pattern", "width", "height", "square_size", "marker_size", "dictionary"}
    board_changes = {k: v for k, v in overrides.items() if k in board_fields and v is not None}
    other_changes = {k: v for k, v in overrides.items() if k not in board_fields and v is not None}

    if board_changes:
        other_changes["board"] = replace(config.board, **board_changes)
    return replace(config, **other_changes)


# ============================================================================
# Detector Parameters (OpenCV FileStorage)
# ============================================================================


def load_detector_parameters(path: Path) -> DetectorParameters:
    """
    Read ArUco detector thresholds from an OpenCV YAML/XML parameter file.

    Keys absent from the file keep OpenCV's defaults.

    Args:
        path: Parameter file, e.g. detector_params.yml

    Returns:
        DetectorParameters dataclass

    Raises:
        DetectorParametersError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.is_file():
        raise DetectorParametersError(f"Cannot find detector parameters file {path}", path)

    try:
        fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    except (cv2.error, SystemError) as e:
        # Some OpenCV builds surface parse failures as SystemError
        raise DetectorParametersError(f"Invalid detector parameters file {path}: {e}", path) from e

    if not fs.isOpened():
        raise DetectorParametersError(f"Invalid detector parameters file {path}", path)

    values = {}
    try:
        for name, key in DETECTOR_PARAMETER_KEYS.items():
            node = fs.getNode(key)
            if node.empty() or node.isNone():
                continue
            if node.isInt():
                values[name] = int(node.real())
            elif node.isReal():
                values[name] = float(node.real())
            else:
                raise DetectorParametersError(f"{key} in {path} must be numeric", path)
    finally:
        fs.release()

    return DetectorParameters(**values)


def save_detector_parameters(parameters: DetectorParameters, path: Path) -> None:
    """
    Write the thresholds that are set to an OpenCV YAML/XML parameter file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    try:
        for key, value in parameters.overrides().items():
            fs.write(key, value)
    finally:
        fs.release()
