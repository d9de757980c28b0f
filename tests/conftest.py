"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

from calicapture.targets.detection import TargetDetector
from calicapture.types import BoardGeometry, DetectionResult, PatternType


class ScriptedDetector(TargetDetector):
    """
    Detector that ignores image content and replays a list of results.

    Results are returned in call order; once exhausted, the last one repeats.
    """

    def __init__(self, geometry, results):
        super().__init__(geometry)
        self.results = list(results)
        self.calls = 0

    def detect(self, image):
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        return result


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after test."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def chessboard_geometry():
    """9x6 inner-corner chessboard, 25 mm squares."""
    return BoardGeometry(
        pattern=PatternType.CHESSBOARD,
        width=9,
        height=6,
        square_size=25.0,
    )


@pytest.fixture
def charuco_geometry():
    """ChArUco board with 4x3 inner corners (5x4 squares)."""
    return BoardGeometry(
        pattern=PatternType.CHARUCO,
        width=4,
        height=3,
        square_size=0.04,
        marker_size=0.03,
        dictionary="DICT_4X4_50",
    )


@pytest.fixture
def small_marker_geometry():
    """Marker board with exactly three inner corners (ids 0, 1, 2)."""
    return BoardGeometry(
        pattern=PatternType.CHARUCO,
        width=3,
        height=1,
        square_size=0.04,
        marker_size=0.03,
        dictionary="DICT_4X4_50",
    )


@pytest.fixture
def chessboard_image(chessboard_geometry):
    """Clean synthetic image of the 9x6 chessboard."""
    from calicapture.targets.geometry import generate_board_image
    return generate_board_image(chessboard_geometry, width=800, height=600, margin=40)


@pytest.fixture
def blank_image():
    return np.full((600, 800, 3), 255, dtype=np.uint8)


@pytest.fixture
def full_grid_detection(chessboard_geometry):
    """Full-board detection result for the 9x6 chessboard."""
    points = np.random.default_rng(0).uniform(0, 500, (chessboard_geometry.point_count, 2))
    return DetectionResult(found=True, points=points.astype(np.float32))


@pytest.fixture
def write_images():
    """Write small placeholder images; returns the written paths."""

    def _write(directory, names, size=(64, 48)):
        directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for name in names:
            path = directory / name
            cv2.imwrite(str(path), np.zeros((size[1], size[0], 3), dtype=np.uint8))
            paths.append(path)
        return paths

    return _write


@pytest.fixture
def pinhole_views():
    """
    Synthetic pinhole projections of a 9x6 board from 12 poses.

    Returns (object_points, image_points, camera_matrix, frame_size, poses).
    """
    from calicapture.targets.geometry import corners_for_pattern

    frame_size = (800, 600)
    matrix = np.array([
        [700.0, 0.0, 400.0],
        [0.0, 700.0, 300.0],
        [0.0, 0.0, 1.0],
    ])
    board = corners_for_pattern(PatternType.CHESSBOARD, (9, 6), 25.0)
    board = board - board.mean(axis=0) * np.array([1, 1, 0], dtype=np.float32)

    poses = []
    image_points = []
    for i in range(12):
        rvec = np.array([0.3 * np.sin(i), 0.3 * np.cos(i * 1.3), 0.1 * (i % 3 - 1)])
        tvec = np.array([10.0 * (i % 4 - 1.5), 8.0 * (i % 3 - 1), 500.0 + 20.0 * i])
        projected, _ = cv2.projectPoints(board.astype(np.float64), rvec, tvec, matrix, np.zeros(5))
        poses.append((rvec, tvec))
        image_points.append(projected.reshape(-1, 2).astype(np.float32))

    return board, image_points, matrix, frame_size, poses


@pytest.fixture
def mei_views():
    """
    Synthetic Mei projections (xi = 0.8) of a 9x6 board seen close up, so
    the board spans a wide field of view.

    Returns (object_points, image_points, camera_matrix, xi, frame_size, poses).
    """
    from calicapture.targets.geometry import corners_for_pattern

    frame_size = (800, 600)
    xi = 0.8
    matrix = np.array([
        [560.0, 0.0, 400.0],
        [0.0, 560.0, 300.0],
        [0.0, 0.0, 1.0],
    ])
    board = corners_for_pattern(PatternType.CHESSBOARD, (9, 6), 25.0)
    board = board - board.mean(axis=0) * np.array([1, 1, 0], dtype=np.float32)

    poses = []
    image_points = []
    for i in range(12):
        rvec = np.array([0.4 * np.sin(i), 0.4 * np.cos(i * 1.3), 0.1 * (i % 3 - 1)])
        tvec = np.array([15.0 * (i % 4 - 1.5), 12.0 * (i % 3 - 1), 180.0 + 10.0 * i])
        projected, _ = cv2.omnidir.projectPoints(
            board.reshape(-1, 1, 3).astype(np.float64), rvec, tvec, matrix, xi, np.zeros((1, 4))
        )
        poses.append((rvec, tvec))
        image_points.append(projected.reshape(-1, 2).astype(np.float32))

    return board, image_points, matrix, xi, frame_size, poses


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    from calicapture.log import logger

    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def scripted_detector():
    """Factory for detectors that replay a list of DetectionResults."""
    return ScriptedDetector
