"""
Core data structures for calicapture.

All types are frozen dataclasses for immutability.
Logic is in separate pure functions - these are data containers only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Union

import numpy as np

from .exceptions import UnknownCameraModelError, UnknownPatternTypeError

# Fewer accepted samples than this make a calibration numerically unreliable.
MIN_CALIBRATION_SAMPLES = 10


# ============================================================================
# Enumerations
# ============================================================================


class PatternType(str, Enum):
    """Calibration target families."""

    CHESSBOARD = "chessboard"
    CIRCLES_GRID = "circles_grid"
    ASYMMETRIC_CIRCLES_GRID = "asymmetric_circles_grid"
    ARUCO = "aruco"
    CHARUCO = "charuco"

    @classmethod
    def from_name(cls, name: str) -> PatternType:
        """Parse a pattern name case-insensitively."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise UnknownPatternTypeError(name) from None

    @property
    def is_marker_board(self) -> bool:
        return self in (PatternType.ARUCO, PatternType.CHARUCO)


class CameraModel(str, Enum):
    """Camera model families understood by the calibration engine."""

    PINHOLE = "pinhole"
    MEI = "mei"
    KANNALA_BRANDT = "kannala-brandt"
    SCARAMUZZA = "scaramuzza"

    @classmethod
    def from_name(cls, name: str) -> CameraModel:
        """Parse a camera model name case-insensitively."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise UnknownCameraModelError(name) from None

    @property
    def display_name(self) -> str:
        return {
            CameraModel.PINHOLE: "Pinhole",
            CameraModel.MEI: "Mei",
            CameraModel.KANNALA_BRANDT: "Kannala-Brandt",
            CameraModel.SCARAMUZZA: "Scaramuzza-Omnidirect",
        }[self]


# ============================================================================
# Board Geometry
# ============================================================================


@dataclass(frozen=True)  # No slots - geometry tables are cached per instance
class BoardGeometry:
    """
    Physical layout of a planar calibration target.

    width/height count inner corners (chessboard, ChArUco) or circles
    (circle grids) along x and y. A ChArUco board therefore has
    (width + 1) x (height + 1) squares.
    """

    pattern: PatternType
    width: int
    height: int
    square_size: float
    marker_size: float = 0.0
    dictionary: int | str = 0  # OpenCV predefined dictionary id or name
    legacy_pattern: bool = False  # ChArUco layout of OpenCV < 4.6

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Board size must be positive, got {self.width}x{self.height}")
        if self.square_size <= 0:
            raise ValueError(f"Square size must be positive, got {self.square_size}")
        if self.pattern.is_marker_board and not 0 < self.marker_size < self.square_size:
            raise ValueError(
                f"Marker size must be in (0, square_size), got {self.marker_size}"
            )

    @property
    def board_size(self) -> tuple[int, int]:
        """(width, height) as OpenCV expects for pattern sizes."""
        return (self.width, self.height)

    @property
    def point_count(self) -> int:
        """Number of points in a full-board detection."""
        return self.width * self.height


# ============================================================================
# Detection and Correspondences
# ============================================================================


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """
    Target detection in a single image.

    ids is only populated for marker boards and holds interpolated
    board-corner IDs, one per point.
    """

    found: bool
    points: np.ndarray  # (n, 2) image coordinates (x, y)
    ids: np.ndarray | None = None  # (n,) board corner ids

    def __post_init__(self):
        if self.points.ndim != 2 or self.points.shape[1] != 2:
            raise ValueError(f"points must have shape (n, 2), got {self.points.shape}")
        if self.ids is not None:
            if len(self.ids) != len(self.points):
                raise ValueError(
                    f"ids/points length mismatch: {len(self.ids)} != {len(self.points)}"
                )
            if len(np.unique(self.ids)) != len(self.ids):
                raise ValueError("Detection ids must be unique")

    @classmethod
    def not_found(cls, with_ids: bool = False) -> DetectionResult:
        return cls(
            found=False,
            points=np.empty((0, 2), dtype=np.float32),
            ids=np.empty((0,), dtype=np.int32) if with_ids else None,
        )

    @property
    def point_count(self) -> int:
        return len(self.points)


@dataclass(frozen=True, slots=True)
class CorrespondenceSet:
    """
    Order-aligned 2D-3D correspondences for one view of the board.

    Row i of image_points and object_points is the same physical point.
    """

    image_points: np.ndarray  # (n, 2) float32
    object_points: np.ndarray  # (n, 3) float32

    def __post_init__(self):
        if len(self.image_points) != len(self.object_points):
            raise ValueError(
                f"Correspondence length mismatch: {len(self.image_points)} image points, "
                f"{len(self.object_points)} object points"
            )

    def __len__(self) -> int:
        return len(self.image_points)


@dataclass(frozen=True, slots=True)
class CorrespondencePair:
    """
    Left/right correspondences observing the same board points in the same order.
    """

    left: CorrespondenceSet
    right: CorrespondenceSet

    def __post_init__(self):
        if not np.array_equal(self.left.object_points, self.right.object_points):
            raise ValueError("Stereo pair sides must share identical object points")

    @property
    def object_points(self) -> np.ndarray:
        return self.left.object_points

    def __len__(self) -> int:
        return len(self.left)


@dataclass(frozen=True, slots=True)
class Rejection:
    """A frame that did not produce a usable sample."""

    reason: str


Sample = Union[CorrespondenceSet, CorrespondencePair]


# ============================================================================
# Stereo File Pairing
# ============================================================================


@dataclass(frozen=True, slots=True)
class FilePairing:
    """
    Left/right image files paired by index, after filename validation.
    """

    pairs: tuple[tuple[Path, Path], ...]
    prefix_left: str = ""
    prefix_right: str = ""

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[tuple[Path, Path]]:
        return iter(self.pairs)

    @property
    def left_paths(self) -> list[Path]:
        return [left for left, _ in self.pairs]

    @property
    def right_paths(self) -> list[Path]:
        return [right for _, right in self.pairs]

    def as_dict(self) -> dict[Path, Path]:
        """Mapping from left image path to right image path."""
        return dict(self.pairs)


# ============================================================================
# Capture Reporting
# ============================================================================


@dataclass(frozen=True, slots=True)
class FrameOutcome:
    """
    What happened to one frame (or one left/right pair) during capture.
    """

    index: int
    paths: tuple[Path, ...]
    found: tuple[bool, ...]  # per side
    accepted: bool
    reason: str | None = None


# ============================================================================
# Calibration Results
# ============================================================================


@dataclass(frozen=True, slots=True)
class CameraCalibration:
    """
    Fitted parameters for a single camera.

    xi is the Mei mirror parameter and is None for the other models.
    rvecs/tvecs hold the board pose of every sample listed in views (the
    omnidirectional solver may drop ill-conditioned samples).
    """

    name: str
    model: CameraModel
    image_size: tuple[int, int]  # (width, height)
    matrix: np.ndarray  # 3x3 camera matrix
    distortion: np.ndarray  # distortion coefficients, model dependent
    error: float  # RMS reprojection error in pixels
    sample_count: int
    xi: float | None = None
    rvecs: tuple[np.ndarray, ...] = field(default_factory=tuple)
    tvecs: tuple[np.ndarray, ...] = field(default_factory=tuple)
    views: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class StereoCalibration:
    """
    Fitted parameters for a stereo rig: right camera pose relative to left.
    """

    left: CameraCalibration
    right: CameraCalibration
    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector
    error: float  # RMS stereo reprojection error


# ============================================================================
# Run Configuration
# ============================================================================


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    """
    Complete configuration for one capture + calibration run.
    Loaded from TOML, overridden from the command line.

    Mono runs use the *_left prefix and camera name only.
    """

    board: BoardGeometry
    input_dir: Path = Path("calibrationdata")
    extension: str = ".png"
    prefix_left: str = "left-"
    prefix_right: str = "right-"
    camera_model: CameraModel = CameraModel.MEI
    camera_name_left: str = "camera"
    camera_name_right: str = "camera_right"
    output_dir: Path = Path(".")
    detector_params: Path | None = None
    refine_markers: bool = True
    minimum_samples: int = MIN_CALIBRATION_SAMPLES
    view_results: bool = False
    verbose: bool = False


# ============================================================================
# Marker Detector Parameters
# ============================================================================

# Dataclass field -> key in the OpenCV parameter file / DetectorParameters attribute
DETECTOR_PARAMETER_KEYS = {
    "adaptive_thresh_win_size_min": "adaptiveThreshWinSizeMin",
    "adaptive_thresh_win_size_max": "adaptiveThreshWinSizeMax",
    "adaptive_thresh_win_size_step": "adaptiveThreshWinSizeStep",
    "adaptive_thresh_constant": "adaptiveThreshConstant",
    "min_marker_perimeter_rate": "minMarkerPerimeterRate",
    "max_marker_perimeter_rate": "maxMarkerPerimeterRate",
    "polygonal_approx_accuracy_rate": "polygonalApproxAccuracyRate",
    "min_corner_distance_rate": "minCornerDistanceRate",
    "min_distance_to_border": "minDistanceToBorder",
    "min_marker_distance_rate": "minMarkerDistanceRate",
    "corner_refinement_method": "cornerRefinementMethod",
    "corner_refinement_win_size": "cornerRefinementWinSize",
    "corner_refinement_max_iterations": "cornerRefinementMaxIterations",
    "corner_refinement_min_accuracy": "cornerRefinementMinAccuracy",
    "marker_border_bits": "markerBorderBits",
    "perspective_remove_pixel_per_cell": "perspectiveRemovePixelPerCell",
    "perspective_remove_ignored_margin_per_cell": "perspectiveRemoveIgnoredMarginPerCell",
    "max_erroneous_bits_in_border_rate": "maxErroneousBitsInBorderRate",
    "min_otsu_std_dev": "minOtsuStdDev",
    "error_correction_rate": "errorCorrectionRate",
}


@dataclass(frozen=True, slots=True)
class DetectorParameters:
    """
    Tunable ArUco detector thresholds, read once at startup.

    None keeps OpenCV's default for that threshold.
    """

    adaptive_thresh_win_size_min: int | None = None
    adaptive_thresh_win_size_max: int | None = None
    adaptive_thresh_win_size_step: int | None = None
    adaptive_thresh_constant: float | None = None
    min_marker_perimeter_rate: float | None = None
    max_marker_perimeter_rate: float | None = None
    polygonal_approx_accuracy_rate: float | None = None
    min_corner_distance_rate: float | None = None
    min_distance_to_border: int | None = None
    min_marker_distance_rate: float | None = None
    corner_refinement_method: int | None = None
    corner_refinement_win_size: int | None = None
    corner_refinement_max_iterations: int | None = None
    corner_refinement_min_accuracy: float | None = None
    marker_border_bits: int | None = None
    perspective_remove_pixel_per_cell: int | None = None
    perspective_remove_ignored_margin_per_cell: float | None = None
    max_erroneous_bits_in_border_rate: float | None = None
    min_otsu_std_dev: float | None = None
    error_correction_rate: float | None = None

    def overrides(self) -> dict[str, int | float]:
        """OpenCV attribute name -> value for every threshold that was set."""
        return {
            key: getattr(self, name)
            for name, key in DETECTOR_PARAMETER_KEYS.items()
            if getattr(self, name) is not None
        }
