# calicapture - Calibration capture pipeline

__version__ = "0.1.0"

# Core types
from calicapture.types import (
    MIN_CALIBRATION_SAMPLES,
    BoardGeometry,
    CameraCalibration,
    CameraModel,
    CaptureConfig,
    CorrespondencePair,
    CorrespondenceSet,
    DetectionResult,
    DetectorParameters,
    FilePairing,
    FrameOutcome,
    PatternType,
    Rejection,
    StereoCalibration,
)

# Errors
from calicapture.exceptions import (
    CalibrationError,
    CaptureError,
    ConfigError,
    DatasetFrozenError,
    DetectorParametersError,
    FilenameMismatchError,
    ImageLoadError,
    InputDirectoryNotFoundError,
    InsufficientSamplesError,
    NoImagesFoundError,
    StereoPairingError,
    UnknownCameraModelError,
    UnknownMarkerIdError,
    UnknownPatternTypeError,
)

# Targets
from calicapture.targets import (
    build_correspondence_pair,
    build_correspondences,
    create_detector,
    generate_board_image,
)

# Capture
from calicapture.images import find_images, list_images
from calicapture.pairing import pair_image_lists, pair_stereo_images
from calicapture.dataset import CalibrationDataset, FrozenDataset
from calicapture.pipeline import CaptureReport, capture_mono, capture_stereo

# Configuration
from calicapture.config import (
    load_capture_config,
    save_capture_config,
    load_detector_parameters,
    save_detector_parameters,
)

# Calibration
from calicapture.calibration import (
    calibrate_camera,
    calibrate_stereo,
    write_camera_params,
    write_correspondence_dump,
    write_stereo_params,
)

__all__ = [
    # Core types
    "MIN_CALIBRATION_SAMPLES",
    "BoardGeometry",
    "CameraCalibration",
    "CameraModel",
    "CaptureConfig",
    "CorrespondencePair",
    "CorrespondenceSet",
    "DetectionResult",
    "DetectorParameters",
    "FilePairing",
    "FrameOutcome",
    "PatternType",
    "Rejection",
    "StereoCalibration",
    # Errors
    "CalibrationError",
    "CaptureError",
    "ConfigError",
    "DatasetFrozenError",
    "DetectorParametersError",
    "FilenameMismatchError",
    "ImageLoadError",
    "InputDirectoryNotFoundError",
    "InsufficientSamplesError",
    "NoImagesFoundError",
    "StereoPairingError",
    "UnknownCameraModelError",
    "UnknownMarkerIdError",
    "UnknownPatternTypeError",
    # Targets
    "build_correspondence_pair",
    "build_correspondences",
    "create_detector",
    "generate_board_image",
    # Capture
    "find_images",
    "list_images",
    "pair_image_lists",
    "pair_stereo_images",
    "CalibrationDataset",
    "FrozenDataset",
    "CaptureReport",
    "capture_mono",
    "capture_stereo",
    # Configuration
    "load_capture_config",
    "save_capture_config",
    "load_detector_parameters",
    "save_detector_parameters",
    # Calibration
    "calibrate_camera",
    "calibrate_stereo",
    "write_camera_params",
    "write_correspondence_dump",
    "write_stereo_params",
]
