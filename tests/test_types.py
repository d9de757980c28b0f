"""
Tests for calicapture.types dataclasses.
"""

from pathlib import Path

import numpy as np
import pytest

from calicapture.exceptions import UnknownCameraModelError, UnknownPatternTypeError
from calicapture.types import (
    BoardGeometry,
    CameraModel,
    CorrespondencePair,
    CorrespondenceSet,
    DetectionResult,
    DetectorParameters,
    FilePairing,
    PatternType,
)


class TestPatternType:
    def test_from_name_case_insensitive(self):
        assert PatternType.from_name("chessboard") == PatternType.CHESSBOARD
        assert PatternType.from_name("ChArUco") == PatternType.CHARUCO
        assert PatternType.from_name("ASYMMETRIC_CIRCLES_GRID") == PatternType.ASYMMETRIC_CIRCLES_GRID

    def test_unknown_name(self):
        with pytest.raises(UnknownPatternTypeError, match="hexagons"):
            PatternType.from_name("hexagons")

    def test_marker_boards(self):
        assert PatternType.CHARUCO.is_marker_board
        assert PatternType.ARUCO.is_marker_board
        assert not PatternType.CHESSBOARD.is_marker_board
        assert not PatternType.CIRCLES_GRID.is_marker_board


class TestCameraModel:
    def test_from_name(self):
        assert CameraModel.from_name("pinhole") == CameraModel.PINHOLE
        assert CameraModel.from_name("MEI") == CameraModel.MEI
        assert CameraModel.from_name("kannala-brandt") == CameraModel.KANNALA_BRANDT
        assert CameraModel.from_name("Scaramuzza") == CameraModel.SCARAMUZZA

    def test_unknown_name(self):
        with pytest.raises(UnknownCameraModelError):
            CameraModel.from_name("orthographic")


class TestBoardGeometry:
    def test_point_count(self, chessboard_geometry):
        assert chessboard_geometry.point_count == 54
        assert chessboard_geometry.board_size == (9, 6)

    def test_is_hashable(self, chessboard_geometry):
        same = BoardGeometry(PatternType.CHESSBOARD, 9, 6, 25.0)
        assert hash(same) == hash(chessboard_geometry)
        assert same == chessboard_geometry

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError, match="positive"):
            BoardGeometry(PatternType.CHESSBOARD, 0, 6, 25.0)
        with pytest.raises(ValueError, match="positive"):
            BoardGeometry(PatternType.CHESSBOARD, 9, 6, 0.0)

    def test_marker_must_fit_in_square(self):
        with pytest.raises(ValueError, match="Marker size"):
            BoardGeometry(PatternType.CHARUCO, 4, 3, 0.04, marker_size=0.05)
        with pytest.raises(ValueError, match="Marker size"):
            BoardGeometry(PatternType.CHARUCO, 4, 3, 0.04)

    def test_grid_ignores_marker_size(self):
        geometry = BoardGeometry(PatternType.CIRCLES_GRID, 4, 11, 1.0, marker_size=5.0)
        assert geometry.point_count == 44


class TestDetectionResult:
    def test_not_found(self):
        result = DetectionResult.not_found()
        assert not result.found
        assert result.point_count == 0
        assert result.ids is None

    def test_not_found_with_ids(self):
        result = DetectionResult.not_found(with_ids=True)
        assert result.ids is not None
        assert len(result.ids) == 0

    def test_ids_length_must_match_points(self):
        with pytest.raises(ValueError):
            DetectionResult(
                found=True,
                points=np.zeros((3, 2), dtype=np.float32),
                ids=np.array([0, 1]),
            )

    def test_ids_must_be_unique(self):
        with pytest.raises(ValueError, match="unique"):
            DetectionResult(
                found=True,
                points=np.zeros((3, 2), dtype=np.float32),
                ids=np.array([0, 1, 1]),
            )

    def test_points_must_be_2d(self):
        with pytest.raises(ValueError):
            DetectionResult(found=True, points=np.zeros((3, 3), dtype=np.float32))


class TestCorrespondences:
    def test_set_length_mismatch(self):
        with pytest.raises(ValueError):
            CorrespondenceSet(
                image_points=np.zeros((4, 2), dtype=np.float32),
                object_points=np.zeros((3, 3), dtype=np.float32),
            )

    def test_set_length(self):
        sample = CorrespondenceSet(
            image_points=np.zeros((4, 2), dtype=np.float32),
            object_points=np.zeros((4, 3), dtype=np.float32),
        )
        assert len(sample) == 4

    def test_pair_requires_identical_object_points(self):
        left = CorrespondenceSet(np.zeros((2, 2), np.float32), np.zeros((2, 3), np.float32))
        right = CorrespondenceSet(np.zeros((2, 2), np.float32), np.ones((2, 3), np.float32))
        with pytest.raises(ValueError):
            CorrespondencePair(left=left, right=right)

    def test_pair_shares_object_points(self):
        objects = np.arange(6, dtype=np.float32).reshape(2, 3)
        left = CorrespondenceSet(np.zeros((2, 2), np.float32), objects)
        right = CorrespondenceSet(np.ones((2, 2), np.float32), objects.copy())
        pair = CorrespondencePair(left=left, right=right)
        assert len(pair) == 2
        np.testing.assert_array_equal(pair.object_points, objects)


class TestFilePairing:
    def test_paths_and_dict(self):
        pairing = FilePairing(
            pairs=((Path("left1.bmp"), Path("right1.bmp")), (Path("left2.bmp"), Path("right2.bmp"))),
            prefix_left="left",
            prefix_right="right",
        )
        assert len(pairing) == 2
        assert pairing.left_paths == [Path("left1.bmp"), Path("left2.bmp")]
        assert pairing.right_paths == [Path("right1.bmp"), Path("right2.bmp")]
        assert pairing.as_dict()[Path("left2.bmp")] == Path("right2.bmp")


class TestDetectorParameters:
    def test_overrides_only_set_values(self):
        params = DetectorParameters(adaptive_thresh_win_size_min=5, error_correction_rate=0.5)
        assert params.overrides() == {
            "adaptiveThreshWinSizeMin": 5,
            "errorCorrectionRate": 0.5,
        }

    def test_defaults_empty(self):
        assert DetectorParameters().overrides() == {}
