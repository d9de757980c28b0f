"""
Tests for calicapture.calibration (engine and output files).
"""

import cv2
import numpy as np
import pytest

from calicapture.calibration import (
    calibrate_camera,
    calibrate_stereo,
    compute_reprojection_errors,
    draw_results,
    write_camera_params,
    write_correspondence_dump,
    write_stereo_params,
)
from calicapture.calibration.intrinsic import FISHEYE_FLAGS
from calicapture.calibration.output import read_camera_matrix
from calicapture.dataset import FrozenDataset
from calicapture.exceptions import CalibrationError
from calicapture.types import CameraModel, CorrespondencePair, CorrespondenceSet


BASELINE = np.array([-100.0, 0.0, 0.0])


@pytest.fixture
def mono_dataset(pinhole_views):
    board, image_points, _, _, _ = pinhole_views
    samples = tuple(
        CorrespondenceSet(image_points=points, object_points=board.copy())
        for points in image_points
    )
    return FrozenDataset(samples=samples)


@pytest.fixture
def stereo_dataset(pinhole_views):
    board, image_points, matrix, _, poses = pinhole_views
    samples = []
    for points, (rvec, tvec) in zip(image_points, poses):
        right, _ = cv2.projectPoints(board.astype(np.float64), rvec, tvec + BASELINE, matrix, np.zeros(5))
        samples.append(CorrespondencePair(
            left=CorrespondenceSet(image_points=points, object_points=board.copy()),
            right=CorrespondenceSet(image_points=right.reshape(-1, 2).astype(np.float32), object_points=board.copy()),
        ))
    return FrozenDataset(samples=tuple(samples), stereo=True)


@pytest.fixture
def pinhole_calibration(mono_dataset, pinhole_views):
    frame_size = pinhole_views[3]
    return calibrate_camera(mono_dataset, frame_size, CameraModel.PINHOLE, "front")


@pytest.fixture
def mei_dataset(mei_views):
    board, image_points, _, _, _, _ = mei_views
    samples = tuple(
        CorrespondenceSet(image_points=points, object_points=board.copy())
        for points in image_points
    )
    return FrozenDataset(samples=samples)


@pytest.fixture
def mei_stereo_dataset(mei_views):
    board, image_points, matrix, xi, _, poses = mei_views
    samples = []
    for points, (rvec, tvec) in zip(image_points, poses):
        right, _ = cv2.omnidir.projectPoints(
            board.reshape(-1, 1, 3).astype(np.float64), rvec, tvec + BASELINE, matrix, xi, np.zeros((1, 4))
        )
        samples.append(CorrespondencePair(
            left=CorrespondenceSet(image_points=points, object_points=board.copy()),
            right=CorrespondenceSet(image_points=right.reshape(-1, 2).astype(np.float32), object_points=board.copy()),
        ))
    return FrozenDataset(samples=tuple(samples), stereo=True)


class TestCalibrateCamera:
    def test_pinhole_recovers_focal_length(self, pinhole_calibration, pinhole_views):
        matrix = pinhole_views[2]
        assert pinhole_calibration.name == "front"
        assert pinhole_calibration.model == CameraModel.PINHOLE
        assert pinhole_calibration.image_size == (800, 600)
        assert pinhole_calibration.sample_count == 12
        assert pinhole_calibration.xi is None
        assert pinhole_calibration.matrix[0, 0] == pytest.approx(matrix[0, 0], rel=0.01)
        assert pinhole_calibration.matrix[1, 1] == pytest.approx(matrix[1, 1], rel=0.01)
        assert pinhole_calibration.error < 0.1

    def test_pinhole_poses_per_sample(self, pinhole_calibration):
        assert pinhole_calibration.views == tuple(range(12))
        assert len(pinhole_calibration.rvecs) == 12

    def test_reprojection_errors(self, pinhole_calibration, mono_dataset):
        errors = compute_reprojection_errors(pinhole_calibration, mono_dataset)
        assert sorted(errors) == list(range(12))
        assert max(errors.values()) < 0.1

    def test_kannala_brandt(self, pinhole_views):
        board, _, matrix, frame_size, poses = pinhole_views
        samples = []
        for rvec, tvec in poses:
            projected, _ = cv2.fisheye.projectPoints(
                board.reshape(-1, 1, 3).astype(np.float64), rvec, tvec, matrix, np.zeros(4)
            )
            samples.append(CorrespondenceSet(projected.reshape(-1, 2).astype(np.float32), board.copy()))

        calibration = calibrate_camera(FrozenDataset(tuple(samples)), frame_size, CameraModel.KANNALA_BRANDT)

        assert calibration.model == CameraModel.KANNALA_BRANDT
        assert calibration.distortion.shape == (4,)
        assert calibration.matrix[0, 0] == pytest.approx(matrix[0, 0], rel=0.05)

    def test_fisheye_flags_recompute_extrinsics(self):
        assert FISHEYE_FLAGS & cv2.fisheye.CALIB_RECOMPUTE_EXTRINSIC
        assert FISHEYE_FLAGS & cv2.fisheye.CALIB_FIX_SKEW

    def test_mei_recovers_intrinsics(self, mei_dataset, mei_views):
        _, _, matrix, xi, frame_size, _ = mei_views
        calibration = calibrate_camera(mei_dataset, frame_size, CameraModel.MEI, "fisheye")

        assert calibration.model == CameraModel.MEI
        assert calibration.xi == pytest.approx(xi, abs=0.1)
        assert calibration.matrix[0, 0] == pytest.approx(matrix[0, 0], rel=0.05)
        assert calibration.matrix[0, 2] == pytest.approx(matrix[0, 2], abs=5.0)
        assert calibration.distortion.shape == (4,)
        assert calibration.error < 0.5

    def test_mei_poses_follow_views(self, mei_dataset, mei_views):
        frame_size = mei_views[4]
        calibration = calibrate_camera(mei_dataset, frame_size, CameraModel.MEI)

        assert len(calibration.views) > 0
        assert len(calibration.rvecs) == len(calibration.views)
        errors = compute_reprojection_errors(calibration, mei_dataset)
        assert sorted(errors) == sorted(calibration.views)
        assert max(errors.values()) < 0.5

    def test_reprojection_error_is_pixel_distance(self, pinhole_calibration, mono_dataset):
        # Every point moved by a (3, 4) px offset sits 5 px from its reprojection
        shifted = FrozenDataset(samples=tuple(
            CorrespondenceSet(image_points=points + np.float32([3.0, 4.0]), object_points=objects)
            for points, objects in zip(mono_dataset.image_points(), mono_dataset.object_points())
        ))
        errors = compute_reprojection_errors(pinhole_calibration, shifted)
        for error in errors.values():
            assert error == pytest.approx(5.0, abs=0.1)

    def test_scaramuzza_has_no_solver(self, mono_dataset):
        with pytest.raises(CalibrationError, match="Scaramuzza"):
            calibrate_camera(mono_dataset, (800, 600), CameraModel.SCARAMUZZA)

    def test_stereo_side(self, stereo_dataset):
        right = calibrate_camera(stereo_dataset, (800, 600), CameraModel.PINHOLE, "right", side="right")
        assert right.matrix[0, 0] == pytest.approx(700.0, rel=0.01)


class TestCalibrateStereo:
    def test_recovers_baseline(self, stereo_dataset):
        stereo = calibrate_stereo(stereo_dataset, (800, 600), CameraModel.PINHOLE, ("left", "right"))

        assert stereo.left.name == "left"
        assert stereo.right.name == "right"
        np.testing.assert_allclose(stereo.rotation, np.eye(3), atol=1e-3)
        np.testing.assert_allclose(stereo.translation, BASELINE, atol=1.0)
        assert stereo.error < 0.1

    def test_mei_recovers_baseline(self, mei_stereo_dataset, mei_views):
        frame_size = mei_views[4]
        stereo = calibrate_stereo(mei_stereo_dataset, frame_size, CameraModel.MEI)

        assert stereo.left.xi is not None
        assert stereo.right.xi is not None
        np.testing.assert_allclose(stereo.rotation, np.eye(3), atol=1e-2)
        np.testing.assert_allclose(stereo.translation, BASELINE, atol=2.0)
        assert stereo.error < 0.5

    def test_mei_poses_from_joint_solve(self, mei_stereo_dataset, mei_views):
        frame_size = mei_views[4]
        stereo = calibrate_stereo(mei_stereo_dataset, frame_size, CameraModel.MEI)

        assert stereo.left.views == stereo.right.views
        assert len(stereo.right.tvecs) == len(stereo.right.views)
        left_errors = compute_reprojection_errors(stereo.left, mei_stereo_dataset, "left")
        right_errors = compute_reprojection_errors(stereo.right, mei_stereo_dataset, "right")
        assert max(left_errors.values()) < 0.5
        assert max(right_errors.values()) < 0.5

        images = [np.zeros((600, 800), dtype=np.uint8) for _ in range(12)]
        drawn = draw_results(stereo.right, mei_stereo_dataset, images, "right")
        assert np.any(drawn[stereo.right.views[0]][:, :, 2] > 0)

    def test_requires_stereo_dataset(self, mono_dataset):
        with pytest.raises(ValueError):
            calibrate_stereo(mono_dataset, (800, 600), CameraModel.PINHOLE)

    def test_scaramuzza_has_no_solver(self, stereo_dataset):
        with pytest.raises(CalibrationError):
            calibrate_stereo(stereo_dataset, (800, 600), CameraModel.SCARAMUZZA)


class TestOutput:
    def test_camera_params_file(self, pinhole_calibration, temp_dir):
        path = write_camera_params(pinhole_calibration, temp_dir / "front_camera_calib.yaml")

        assert path.exists()
        text = path.read_text()
        assert "model_type" in text
        assert "pinhole" in text
        matrix, distortion = read_camera_matrix(path)
        np.testing.assert_allclose(matrix, pinhole_calibration.matrix)
        np.testing.assert_allclose(distortion, pinhole_calibration.distortion)

    def test_mei_params_file_has_xi(self, mei_dataset, mei_views, temp_dir):
        calibration = calibrate_camera(mei_dataset, mei_views[4], CameraModel.MEI)
        path = write_camera_params(calibration, temp_dir / "camera_camera_calib.yaml")

        fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
        assert fs.getNode("model_type").string() == "mei"
        assert fs.getNode("xi").real() == pytest.approx(calibration.xi)
        fs.release()

    def test_stereo_params_files(self, stereo_dataset, temp_dir):
        stereo = calibrate_stereo(stereo_dataset, (800, 600), CameraModel.PINHOLE)
        paths = write_stereo_params(stereo, temp_dir / "out")

        assert [p.name for p in paths] == [
            "camera_left_camera_calib.yaml",
            "camera_right_camera_calib.yaml",
            "extrinsics.yaml",
        ]
        assert all(p.exists() for p in paths)

        fs = cv2.FileStorage(str(paths[2]), cv2.FILE_STORAGE_READ)
        translation = fs.getNode("translation").mat().ravel()
        fs.release()
        np.testing.assert_allclose(translation, stereo.translation)

    def test_mono_dump(self, mono_dataset, temp_dir):
        path = write_correspondence_dump(mono_dataset, temp_dir / "front_chessboard_data.npz")
        with np.load(path) as data:
            assert int(data["sample_count"]) == 12
            assert not bool(data["stereo"])
            np.testing.assert_array_equal(data["image_points_3"], mono_dataset.image_points()[3])
            assert data["object_points_0"].shape == (54, 3)

    def test_stereo_dump(self, stereo_dataset, temp_dir):
        path = write_correspondence_dump(stereo_dataset, temp_dir / "stereo.npz")
        with np.load(path) as data:
            assert bool(data["stereo"])
            assert "image_points_left_0" in data.files
            assert "image_points_right_11" in data.files

    def test_draw_results(self, pinhole_calibration, mono_dataset):
        images = [np.zeros((600, 800), dtype=np.uint8) for _ in range(12)]
        drawn = draw_results(pinhole_calibration, mono_dataset, images)

        assert len(drawn) == 12
        assert drawn[0].shape == (600, 800, 3)
        # Observed points in green, reprojected points in red
        assert np.any(drawn[0][:, :, 1] > 0)
        assert np.any(drawn[0][:, :, 2] > 0)

    def test_draw_results_needs_one_image_per_sample(self, pinhole_calibration, mono_dataset):
        with pytest.raises(ValueError):
            draw_results(pinhole_calibration, mono_dataset, [np.zeros((600, 800, 3), np.uint8)])
