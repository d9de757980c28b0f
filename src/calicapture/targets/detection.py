"""
Target detection: one detector per calibration pattern family.

Detectors are thin adapters over OpenCV. Each returns a DetectionResult for a
single image; partial grid detections are reported as not found.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import cv2
import numpy as np

from ..types import BoardGeometry, DetectionResult, DetectorParameters, PatternType
from .geometry import create_charuco_board, get_dictionary


SUBPIX_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.0001)


# ============================================================================
# Image Helpers
# ============================================================================


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert any decoded image (gray/BGR/BGRA, 8 or 16 bit) to 8-bit gray."""
    if image.ndim == 3:
        code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        image = cv2.cvtColor(image, code)
    if image.dtype != np.uint8:
        image = cv2.normalize(image, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    return image


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Copy of the image as 8-bit BGR, for drawing."""
    if image.ndim == 3 and image.shape[2] == 3 and image.dtype == np.uint8:
        return image.copy()
    return cv2.cvtColor(to_gray(image), cv2.COLOR_GRAY2BGR)


def aruco_detector_parameters(parameters: DetectorParameters | None) -> cv2.aruco.DetectorParameters:
    """
    Build OpenCV DetectorParameters, applying only the thresholds that were set.
    """
    params = cv2.aruco.DetectorParameters()
    if parameters is None:
        return params

    for key, value in parameters.overrides().items():
        # Keep the attribute's native type (int thresholds stay int)
        setattr(params, key, type(getattr(params, key))(value))
    return params


# ============================================================================
# Detectors
# ============================================================================


class TargetDetector(ABC):
    """Detects one calibration target family in single images."""

    def __init__(self, geometry: BoardGeometry):
        self.geometry = geometry

    @abstractmethod
    def detect(self, image: np.ndarray) -> DetectionResult:
        """Detect the target in a decoded image."""

    def sketch(self, image: np.ndarray, result: DetectionResult) -> np.ndarray:
        """Annotated copy of the image, for display only."""
        sketch = to_bgr(image)
        if result.point_count > 0:
            cv2.drawChessboardCorners(
                sketch,
                self.geometry.board_size,
                result.points.reshape(-1, 1, 2),
                result.found,
            )
        return sketch

    def _full_board(self, points: np.ndarray | None) -> DetectionResult:
        if points is None or len(points) != self.geometry.point_count:
            return DetectionResult.not_found()
        return DetectionResult(found=True, points=points.reshape(-1, 2).astype(np.float32))


class ChessboardDetector(TargetDetector):
    """Inner chessboard corners with sub-pixel refinement."""

    def __init__(self, geometry: BoardGeometry, subpix_window: tuple[int, int] = (11, 11)):
        super().__init__(geometry)
        self.subpix_window = subpix_window

    def detect(self, image: np.ndarray) -> DetectionResult:
        gray = to_gray(image)
        found, corners = cv2.findChessboardCorners(
            gray,
            self.geometry.board_size,
            flags=cv2.CALIB_CB_ADAPTIVE_THRESH | cv2.CALIB_CB_NORMALIZE_IMAGE,
        )
        if not found or corners is None:
            return DetectionResult.not_found()

        corners = cv2.cornerSubPix(gray, corners, self.subpix_window, (-1, -1), SUBPIX_CRITERIA)
        return self._full_board(corners)


class CirclesGridDetector(TargetDetector):
    """Symmetric or asymmetric circle grid centres."""

    def detect(self, image: np.ndarray) -> DetectionResult:
        flags = cv2.CALIB_CB_SYMMETRIC_GRID
        if self.geometry.pattern == PatternType.ASYMMETRIC_CIRCLES_GRID:
            flags = cv2.CALIB_CB_ASYMMETRIC_GRID

        found, centers = cv2.findCirclesGrid(to_gray(image), self.geometry.board_size, flags=flags)
        if not found:
            return DetectionResult.not_found()
        return self._full_board(centers)


class MarkerBoardDetector(TargetDetector):
    """
    ArUco markers on a ChArUco layout, interpolated to board corners.

    Markers are detected first; when refine is on, markers rejected by the
    first pass are recovered against the known board layout; the recovered
    markers are then interpolated to board-corner detections, whose IDs are
    reported.
    """

    def __init__(
        self,
        geometry: BoardGeometry,
        parameters: DetectorParameters | None = None,
        refine: bool = True,
    ):
        super().__init__(geometry)
        self.refine = refine
        self.board = create_charuco_board(geometry)
        self._marker_detector = cv2.aruco.ArucoDetector(
            get_dictionary(geometry),
            aruco_detector_parameters(parameters),
        )
        self._charuco_detector = cv2.aruco.CharucoDetector(self.board)

    def detect(self, image: np.ndarray) -> DetectionResult:
        gray = to_gray(image)

        corners, ids, rejected = self._marker_detector.detectMarkers(gray)
        if ids is None or len(ids) == 0:
            return DetectionResult.not_found(with_ids=True)

        if self.refine:
            corners, ids, rejected, _ = self._marker_detector.refineDetectedMarkers(
                gray, self.board, corners, ids, rejected
            )

        charuco_corners, charuco_ids, _, _ = self._charuco_detector.detectBoard(
            gray, markerCorners=corners, markerIds=ids
        )
        if charuco_ids is None or len(charuco_ids) == 0:
            return DetectionResult.not_found(with_ids=True)

        return DetectionResult(
            found=True,
            points=charuco_corners.reshape(-1, 2).astype(np.float32),
            ids=charuco_ids.reshape(-1).astype(np.int32),
        )

    def sketch(self, image: np.ndarray, result: DetectionResult) -> np.ndarray:
        sketch = to_bgr(image)
        if result.point_count > 0:
            cv2.aruco.drawDetectedCornersCharuco(
                sketch,
                result.points.reshape(-1, 1, 2),
                result.ids.reshape(-1, 1),
            )
        return sketch


def create_detector(
    geometry: BoardGeometry,
    parameters: DetectorParameters | None = None,
    refine: bool = True,
) -> TargetDetector:
    """
    Create the detector for the geometry's pattern family.

    Args:
        geometry: Board geometry
        parameters: ArUco thresholds (marker boards only)
        refine: Recover rejected markers (marker boards only)
    """
    if geometry.pattern == PatternType.CHESSBOARD:
        return ChessboardDetector(geometry)
    if geometry.pattern in (PatternType.CIRCLES_GRID, PatternType.ASYMMETRIC_CIRCLES_GRID):
        return CirclesGridDetector(geometry)
    return MarkerBoardDetector(geometry, parameters=parameters, refine=refine)
