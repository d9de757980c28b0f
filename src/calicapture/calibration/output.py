"""
Calibration output: parameter files, raw correspondence dumps and
reprojection drawings for manual inspection.
"""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from ..dataset import FrozenDataset
from ..log import logger
from ..targets.detection import to_bgr
from ..types import CameraCalibration, StereoCalibration
from .intrinsic import project_points


OBSERVED_COLOR = (0, 255, 0)
REPROJECTED_COLOR = (0, 0, 255)


# ============================================================================
# Parameter Files
# ============================================================================


def write_camera_params(calibration: CameraCalibration, path: Path) -> Path:
    """
    Write one camera's parameters to an OpenCV YAML file.

    Args:
        calibration: Fitted camera
        path: Output file, e.g. camera_camera_calib.yaml

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    try:
        fs.write("model_type", calibration.model.value)
        fs.write("camera_name", calibration.name)
        fs.write("image_width", int(calibration.image_size[0]))
        fs.write("image_height", int(calibration.image_size[1]))
        fs.write("camera_matrix", np.asarray(calibration.matrix, dtype=np.float64))
        fs.write("distortion_coefficients", np.asarray(calibration.distortion, dtype=np.float64).reshape(1, -1))
        if calibration.xi is not None:
            fs.write("xi", float(calibration.xi))
        fs.write("rms_error", float(calibration.error))
        fs.write("sample_count", int(calibration.sample_count))
    finally:
        fs.release()

    logger.info(f"Wrote calibration file to {path}")
    return path


def write_stereo_params(stereo: StereoCalibration, output_dir: Path) -> list[Path]:
    """
    Write both cameras' parameters and the rig extrinsics to output_dir.

    Returns:
        [left params, right params, extrinsics] paths
    """
    output_dir = Path(output_dir)
    left_path = write_camera_params(stereo.left, output_dir / f"{stereo.left.name}_camera_calib.yaml")
    right_path = write_camera_params(stereo.right, output_dir / f"{stereo.right.name}_camera_calib.yaml")

    extrinsics_path = output_dir / "extrinsics.yaml"
    fs = cv2.FileStorage(str(extrinsics_path), cv2.FILE_STORAGE_WRITE)
    try:
        fs.write("rotation", np.asarray(stereo.rotation, dtype=np.float64))
        fs.write("translation", np.asarray(stereo.translation, dtype=np.float64).reshape(3, 1))
        fs.write("rms_error", float(stereo.error))
    finally:
        fs.release()

    logger.info(f"Wrote calibration files to {output_dir.resolve()}")
    return [left_path, right_path, extrinsics_path]


def read_camera_matrix(path: Path) -> tuple[np.ndarray, np.ndarray]:
    """
    Read (camera_matrix, distortion_coefficients) back from a parameter file.
    """
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    try:
        matrix = fs.getNode("camera_matrix").mat()
        distortion = fs.getNode("distortion_coefficients").mat().ravel()
    finally:
        fs.release()
    return matrix, distortion


# ============================================================================
# Raw Correspondence Dump
# ============================================================================


def write_correspondence_dump(dataset: FrozenDataset, path: Path) -> Path:
    """
    Dump every accepted sample's correspondences to a compressed .npz.

    Keys: object_points_{i}, image_points_{i} (mono) or
    image_points_left_{i} / image_points_right_{i} (stereo), plus
    sample_count and stereo.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    arrays = {
        "sample_count": np.array(dataset.sample_count),
        "stereo": np.array(dataset.stereo),
    }
    object_points = dataset.object_points()
    for i, points in enumerate(object_points):
        arrays[f"object_points_{i}"] = points

    if dataset.stereo:
        for side in ("left", "right"):
            for i, points in enumerate(dataset.image_points(side)):
                arrays[f"image_points_{side}_{i}"] = points
    else:
        for i, points in enumerate(dataset.image_points()):
            arrays[f"image_points_{i}"] = points

    np.savez_compressed(path, **arrays)
    logger.debug(f"Wrote correspondence dump to {path}")
    return path


# ============================================================================
# Result Drawing
# ============================================================================


def draw_results(
    calibration: CameraCalibration,
    dataset: FrozenDataset,
    images: list[np.ndarray],
    side: str = "left",
) -> list[np.ndarray]:
    """
    Draw observed (green) and reprojected (red) board points.

    Args:
        calibration: Fitted camera
        dataset: Dataset the camera was fitted on
        images: One decoded image per sample, in sample order
        side: Which side of a stereo dataset the images belong to

    Returns:
        Annotated BGR copies of the images
    """
    if len(images) != dataset.sample_count:
        raise ValueError(f"Expected {dataset.sample_count} images, got {len(images)}")

    poses = {view: (rvec, tvec) for view, rvec, tvec in zip(calibration.views, calibration.rvecs, calibration.tvecs)}
    object_points = dataset.object_points()
    image_points = dataset.image_points(side)

    drawn = []
    for index, image in enumerate(images):
        sketch = to_bgr(image)

        for x, y in image_points[index]:
            cv2.circle(sketch, (int(round(x)), int(round(y))), 5, OBSERVED_COLOR, 1, cv2.LINE_AA)

        if index in poses:
            rvec, tvec = poses[index]
            projected = project_points(calibration, object_points[index], rvec, tvec)
            for x, y in projected:
                cv2.circle(sketch, (int(round(x)), int(round(y))), 2, REPROJECTED_COLOR, -1, cv2.LINE_AA)

        drawn.append(sketch)
    return drawn
