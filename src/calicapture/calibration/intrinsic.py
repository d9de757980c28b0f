"""
Intrinsic camera calibration.

Pure functions - no threading, no state. The capture pipeline collects the
frames; these functions only read the frozen dataset.
"""

from __future__ import annotations

import cv2
import numpy as np

from ..dataset import FrozenDataset
from ..exceptions import CalibrationError
from ..log import logger
from ..types import CameraCalibration, CameraModel


CALIB_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 100, 1e-6)
FISHEYE_FLAGS = cv2.fisheye.CALIB_RECOMPUTE_EXTRINSIC | cv2.fisheye.CALIB_FIX_SKEW


# ============================================================================
# Calibration
# ============================================================================


def calibrate_camera(
    dataset: FrozenDataset,
    frame_size: tuple[int, int],
    model: CameraModel,
    name: str = "camera",
    side: str = "left",
) -> CameraCalibration:
    """
    Calibrate one camera from accepted correspondence sets.

    Args:
        dataset: Frozen dataset (mono, or one side of a stereo dataset)
        frame_size: (width, height) of the calibration images
        model: Camera model family to fit
        name: Camera name stored with the result
        side: Which side of a stereo dataset to use

    Returns:
        CameraCalibration with the fitted parameters

    Raises:
        CalibrationError: If the model has no solver or the solve fails
    """
    object_points = dataset.object_points()
    image_points = dataset.image_points(side)

    logger.info(f"Calibrating {name} ({model.display_name}) from {len(object_points)} samples")

    try:
        if model == CameraModel.PINHOLE:
            return _calibrate_pinhole(object_points, image_points, frame_size, name)
        if model == CameraModel.KANNALA_BRANDT:
            return _calibrate_kannala_brandt(object_points, image_points, frame_size, name)
        if model == CameraModel.MEI:
            return _calibrate_mei(object_points, image_points, frame_size, name)
    except cv2.error as e:
        raise CalibrationError(f"{model.display_name} calibration of {name} failed: {e}") from e

    raise CalibrationError(f"No solver available for the {model.display_name} camera model")


def _calibrate_pinhole(
    object_points: list[np.ndarray],
    image_points: list[np.ndarray],
    frame_size: tuple[int, int],
    name: str,
) -> CameraCalibration:
    error, matrix, dist, rvecs, tvecs = cv2.calibrateCamera(
        [o.astype(np.float32) for o in object_points],
        [i.astype(np.float32) for i in image_points],
        frame_size,
        None,
        None,
        criteria=CALIB_CRITERIA,
    )

    return CameraCalibration(
        name=name,
        model=CameraModel.PINHOLE,
        image_size=frame_size,
        matrix=matrix,
        distortion=dist.ravel(),
        error=float(error),
        sample_count=len(object_points),
        rvecs=tuple(rvecs),
        tvecs=tuple(tvecs),
        views=tuple(range(len(object_points))),
    )


def _calibrate_kannala_brandt(
    object_points: list[np.ndarray],
    image_points: list[np.ndarray],
    frame_size: tuple[int, int],
    name: str,
) -> CameraCalibration:
    # cv2.fisheye wants (n, 1, 3) / (n, 1, 2) float64 per view
    error, matrix, dist, rvecs, tvecs = cv2.fisheye.calibrate(
        [o.reshape(-1, 1, 3).astype(np.float64) for o in object_points],
        [i.reshape(-1, 1, 2).astype(np.float64) for i in image_points],
        frame_size,
        np.eye(3),
        np.zeros((4, 1)),
        flags=FISHEYE_FLAGS,
        criteria=CALIB_CRITERIA,
    )

    return CameraCalibration(
        name=name,
        model=CameraModel.KANNALA_BRANDT,
        image_size=frame_size,
        matrix=matrix,
        distortion=dist.ravel(),
        error=float(error),
        sample_count=len(object_points),
        rvecs=tuple(rvecs),
        tvecs=tuple(tvecs),
        views=tuple(range(len(object_points))),
    )


def _calibrate_mei(
    object_points: list[np.ndarray],
    image_points: list[np.ndarray],
    frame_size: tuple[int, int],
    name: str,
) -> CameraCalibration:
    # cv2.omnidir wants (1, n, 3) / (1, n, 2) float64 per view
    error, matrix, xi, dist, rvecs, tvecs, idx = cv2.omnidir.calibrate(
        [o.reshape(1, -1, 3).astype(np.float64) for o in object_points],
        [i.reshape(1, -1, 2).astype(np.float64) for i in image_points],
        frame_size,
        None,
        None,
        None,
        cv2.omnidir.CALIB_FIX_SKEW,
        CALIB_CRITERIA,
    )

    views = tuple(int(v) for v in np.asarray(idx).ravel()) if idx is not None else ()
    if len(views) < len(object_points):
        logger.warning(f"Omnidirectional solver used {len(views)} of {len(object_points)} samples")

    return CameraCalibration(
        name=name,
        model=CameraModel.MEI,
        image_size=frame_size,
        matrix=matrix,
        distortion=np.asarray(dist).ravel(),
        error=float(error),
        sample_count=len(object_points),
        xi=float(np.asarray(xi).ravel()[0]),
        rvecs=tuple(rvecs),
        tvecs=tuple(tvecs),
        views=views,
    )


# ============================================================================
# Reprojection
# ============================================================================


def project_points(
    calibration: CameraCalibration,
    object_points: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
) -> np.ndarray:
    """
    Project board points through a calibrated camera.

    Returns:
        (n, 2) image coordinates
    """
    if calibration.model == CameraModel.KANNALA_BRANDT:
        projected, _ = cv2.fisheye.projectPoints(
            object_points.reshape(-1, 1, 3).astype(np.float64),
            rvec,
            tvec,
            calibration.matrix,
            calibration.distortion,
        )
    elif calibration.model == CameraModel.MEI:
        projected, _ = cv2.omnidir.projectPoints(
            object_points.reshape(-1, 1, 3).astype(np.float64),
            rvec,
            tvec,
            calibration.matrix,
            calibration.xi,
            calibration.distortion.reshape(1, -1),
        )
    else:
        projected, _ = cv2.projectPoints(
            object_points.astype(np.float64),
            rvec,
            tvec,
            calibration.matrix,
            calibration.distortion,
        )
    return projected.reshape(-1, 2)


def compute_reprojection_errors(
    calibration: CameraCalibration,
    dataset: FrozenDataset,
    side: str = "left",
) -> dict[int, float]:
    """
    RMS reprojection error per sample, for samples with a solved pose.

    Returns:
        Dict of sample index -> RMS error in pixels
    """
    object_points = dataset.object_points()
    image_points = dataset.image_points(side)

    errors = {}
    for view, rvec, tvec in zip(calibration.views, calibration.rvecs, calibration.tvecs):
        projected = project_points(calibration, object_points[view], rvec, tvec)
        # RMS over points of the Euclidean pixel distance
        residuals = image_points[view] - projected
        errors[view] = float(np.sqrt(np.mean(np.sum(residuals ** 2, axis=1))))
    return errors
