"""
Stereo calibration: relative pose of the right camera w.r.t. the left.

Pure functions - no classes, no state.
"""

from __future__ import annotations

from dataclasses import replace

import cv2
import numpy as np

from ..dataset import FrozenDataset
from ..exceptions import CalibrationError
from ..log import logger
from ..types import CameraCalibration, CameraModel, StereoCalibration
from .intrinsic import CALIB_CRITERIA, calibrate_camera


def calibrate_stereo(
    dataset: FrozenDataset,
    frame_size: tuple[int, int],
    model: CameraModel,
    names: tuple[str, str] = ("camera_left", "camera_right"),
) -> StereoCalibration:
    """
    Calibrate a stereo rig from accepted correspondence pairs.

    Each camera is calibrated on its own first; the relative pose is then
    solved over the shared board points with those intrinsics.

    Args:
        dataset: Frozen stereo dataset
        frame_size: (width, height) of the calibration images
        model: Camera model family for both cameras
        names: (left, right) camera names

    Returns:
        StereoCalibration

    Raises:
        CalibrationError: If the model has no solver or a solve fails
    """
    if not dataset.stereo:
        raise ValueError("calibrate_stereo needs a stereo dataset")

    left = calibrate_camera(dataset, frame_size, model, names[0], side="left")
    right = calibrate_camera(dataset, frame_size, model, names[1], side="right")

    object_points = dataset.object_points()
    image_left = dataset.image_points("left")
    image_right = dataset.image_points("right")

    logger.info(f"Solving stereo extrinsics from {len(object_points)} pairs")

    try:
        if model == CameraModel.PINHOLE:
            return _stereo_pinhole(left, right, object_points, image_left, image_right, frame_size)
        if model == CameraModel.KANNALA_BRANDT:
            return _stereo_kannala_brandt(left, right, object_points, image_left, image_right, frame_size)
        return _stereo_mei(left, right, object_points, image_left, image_right, frame_size)
    except cv2.error as e:
        raise CalibrationError(f"{model.display_name} stereo calibration failed: {e}") from e


def _stereo_pinhole(
    left: CameraCalibration,
    right: CameraCalibration,
    object_points: list[np.ndarray],
    image_left: list[np.ndarray],
    image_right: list[np.ndarray],
    frame_size: tuple[int, int],
) -> StereoCalibration:
    error, _, _, _, _, rotation, translation, _, _ = cv2.stereoCalibrate(
        [o.astype(np.float32) for o in object_points],
        [i.astype(np.float32) for i in image_left],
        [i.astype(np.float32) for i in image_right],
        left.matrix,
        left.distortion,
        right.matrix,
        right.distortion,
        frame_size,
        criteria=CALIB_CRITERIA,
        flags=cv2.CALIB_FIX_INTRINSIC,
    )

    return StereoCalibration(
        left=left,
        right=right,
        rotation=rotation,
        translation=translation.ravel(),
        error=float(error),
    )


def _stereo_kannala_brandt(
    left: CameraCalibration,
    right: CameraCalibration,
    object_points: list[np.ndarray],
    image_left: list[np.ndarray],
    image_right: list[np.ndarray],
    frame_size: tuple[int, int],
) -> StereoCalibration:
    result = cv2.fisheye.stereoCalibrate(
        [o.reshape(-1, 1, 3).astype(np.float64) for o in object_points],
        [i.reshape(-1, 1, 2).astype(np.float64) for i in image_left],
        [i.reshape(-1, 1, 2).astype(np.float64) for i in image_right],
        left.matrix,
        left.distortion.reshape(4, 1),
        right.matrix,
        right.distortion.reshape(4, 1),
        frame_size,
        flags=cv2.fisheye.CALIB_FIX_INTRINSIC,
        criteria=CALIB_CRITERIA,
    )
    # Newer OpenCV builds append per-view rvecs/tvecs
    error, _, _, _, _, rotation, translation = result[:7]

    return StereoCalibration(
        left=left,
        right=right,
        rotation=rotation,
        translation=np.asarray(translation).ravel(),
        error=float(error),
    )


def _stereo_mei(
    left: CameraCalibration,
    right: CameraCalibration,
    object_points: list[np.ndarray],
    image_left: list[np.ndarray],
    image_right: list[np.ndarray],
    frame_size: tuple[int, int],
) -> StereoCalibration:
    # cv2.omnidir refines both intrinsics jointly with the relative pose
    (
        error, _, _, _,
        matrix_left, xi_left, dist_left,
        matrix_right, xi_right, dist_right,
        rvec, tvec, rvecs_left, tvecs_left, idx,
    ) = cv2.omnidir.stereoCalibrate(
        [o.reshape(1, -1, 3).astype(np.float64) for o in object_points],
        [i.reshape(1, -1, 2).astype(np.float64) for i in image_left],
        [i.reshape(1, -1, 2).astype(np.float64) for i in image_right],
        frame_size,
        frame_size,
        left.matrix.copy(),
        np.array([[left.xi]]),
        left.distortion.reshape(1, -1).copy(),
        right.matrix.copy(),
        np.array([[right.xi]]),
        right.distortion.reshape(1, -1).copy(),
        cv2.omnidir.CALIB_USE_GUESS | cv2.omnidir.CALIB_FIX_SKEW,
        CALIB_CRITERIA,
    )

    views = tuple(int(v) for v in np.asarray(idx).ravel()) if idx is not None else ()
    if len(views) < len(object_points):
        logger.warning(f"Omnidirectional stereo solver used {len(views)} of {len(object_points)} pairs")

    rvec = np.asarray(rvec, dtype=np.float64).reshape(3, 1)
    tvec = np.asarray(tvec, dtype=np.float64).reshape(3, 1)
    rvecs_left = [np.asarray(r, dtype=np.float64).reshape(3, 1) for r in rvecs_left]
    tvecs_left = [np.asarray(t, dtype=np.float64).reshape(3, 1) for t in tvecs_left]

    # Right board pose = rig pose applied after the left board pose
    rvecs_right, tvecs_right = [], []
    for rvec_left, tvec_left in zip(rvecs_left, tvecs_left):
        rvec_right, tvec_right = cv2.composeRT(rvec_left, tvec_left, rvec, tvec)[:2]
        rvecs_right.append(rvec_right)
        tvecs_right.append(tvec_right)

    left = replace(
        left,
        matrix=matrix_left,
        xi=float(np.asarray(xi_left).ravel()[0]),
        distortion=np.asarray(dist_left).ravel(),
        rvecs=tuple(rvecs_left),
        tvecs=tuple(tvecs_left),
        views=views,
    )
    right = replace(
        right,
        matrix=matrix_right,
        xi=float(np.asarray(xi_right).ravel()[0]),
        distortion=np.asarray(dist_right).ravel(),
        rvecs=tuple(rvecs_right),
        tvecs=tuple(tvecs_right),
        views=views,
    )
    rotation, _ = cv2.Rodrigues(rvec)

    return StereoCalibration(
        left=left,
        right=right,
        rotation=rotation,
        translation=tvec.ravel(),
        error=float(error),
    )
