"""Custom exception classes for calicapture."""

from __future__ import annotations

from pathlib import Path


class CaptureError(Exception):
    """Base exception for all fatal calicapture errors."""

    pass


# ============================================================================
# Startup / input errors
# ============================================================================


class ConfigError(CaptureError):
    """Raised when a run configuration file cannot be loaded."""

    pass


class UnknownPatternTypeError(ConfigError):
    """Raised when a calibration pattern name is not recognised."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown pattern type: {name}")


class UnknownCameraModelError(ConfigError):
    """Raised when a camera model name is not recognised."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown camera model: {name}")


class DetectorParametersError(ConfigError):
    """Raised when the marker detector parameter file is unreadable or malformed."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class InputDirectoryNotFoundError(CaptureError):
    """Raised when the image input directory does not exist."""

    def __init__(self, directory: Path):
        self.directory = directory
        super().__init__(f"Cannot find input directory {directory}.")


class NoImagesFoundError(CaptureError):
    """Raised when no image matches the prefix and extension filters."""

    def __init__(self, directory: Path, prefix: str, extension: str):
        self.directory = directory
        self.prefix = prefix
        self.extension = extension
        super().__init__(
            f"No calibration images found in {directory} "
            f"(prefix={prefix!r}, extension={extension!r})."
        )


class ImageLoadError(CaptureError):
    """Raised when an image that defines the run cannot be decoded."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Cannot read image {path}")


class StereoPairingError(CaptureError):
    """Raised when left and right image lists cannot be paired one-to-one."""

    pass


class FilenameMismatchError(StereoPairingError):
    """Raised when paired left/right filenames differ after their prefixes."""

    def __init__(self, index: int, left: Path, right: Path, mismatches: int = 1):
        self.index = index
        self.left = left
        self.right = right
        self.mismatches = mismatches
        super().__init__(
            f"Filenames do not match at index {index}: {left.name} {right.name}"
            f" ({mismatches} mismatched pair(s))"
        )


# ============================================================================
# Dataset / calibration errors
# ============================================================================


class InsufficientSamplesError(CaptureError):
    """Raised when too few samples were accepted to run a calibration."""

    def __init__(self, sample_count: int, minimum_samples: int):
        self.sample_count = sample_count
        self.minimum_samples = minimum_samples
        super().__init__(
            f"Insufficient number of detected boards: {sample_count} "
            f"(need at least {minimum_samples})"
        )


class CalibrationError(CaptureError):
    """Raised when the calibration engine cannot solve for a camera model."""

    pass


# ============================================================================
# Programming-contract violations
# ============================================================================


class UnknownMarkerIdError(KeyError):
    """Raised when a board corner ID has no entry in the geometry table."""

    def __init__(self, marker_id: int):
        self.marker_id = marker_id
        super().__init__(marker_id)

    def __str__(self) -> str:
        return f"Unknown marker corner id: {self.marker_id}"


class DatasetFrozenError(RuntimeError):
    """Raised when a sample is accepted after the dataset was handed off."""

    pass
