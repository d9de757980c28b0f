"""
Board geometry: canonical 3D points for every calibration target family.

Pure functions - no classes, no state. Derived tables are cached per
(immutable) BoardGeometry.
"""

from __future__ import annotations

from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Sequence

import cv2
import numpy as np

from ..exceptions import UnknownMarkerIdError
from ..types import BoardGeometry, PatternType


# ============================================================================
# ArUco Dictionary Reference
# ============================================================================

ARUCO_DICTIONARIES = {
    "DICT_4X4_50": cv2.aruco.DICT_4X4_50,
    "DICT_4X4_100": cv2.aruco.DICT_4X4_100,
    "DICT_4X4_250": cv2.aruco.DICT_4X4_250,
    "DICT_4X4_1000": cv2.aruco.DICT_4X4_1000,
    "DICT_5X5_50": cv2.aruco.DICT_5X5_50,
    "DICT_5X5_100": cv2.aruco.DICT_5X5_100,
    "DICT_5X5_250": cv2.aruco.DICT_5X5_250,
    "DICT_5X5_1000": cv2.aruco.DICT_5X5_1000,
    "DICT_6X6_50": cv2.aruco.DICT_6X6_50,
    "DICT_6X6_100": cv2.aruco.DICT_6X6_100,
    "DICT_6X6_250": cv2.aruco.DICT_6X6_250,
    "DICT_6X6_1000": cv2.aruco.DICT_6X6_1000,
    "DICT_7X7_50": cv2.aruco.DICT_7X7_50,
    "DICT_7X7_100": cv2.aruco.DICT_7X7_100,
    "DICT_7X7_250": cv2.aruco.DICT_7X7_250,
    "DICT_7X7_1000": cv2.aruco.DICT_7X7_1000,
    "DICT_ARUCO_ORIGINAL": cv2.aruco.DICT_ARUCO_ORIGINAL,
    "DICT_APRILTAG_16h5": cv2.aruco.DICT_APRILTAG_16h5,
    "DICT_APRILTAG_25h9": cv2.aruco.DICT_APRILTAG_25h9,
    "DICT_APRILTAG_36h10": cv2.aruco.DICT_APRILTAG_36h10,
    "DICT_APRILTAG_36h11": cv2.aruco.DICT_APRILTAG_36h11,
}


def resolve_dictionary(dictionary: int | str) -> int:
    """
    Resolve a dictionary given as OpenCV integer id, digit string or name.

    Raises:
        ValueError: If the name is not a known predefined dictionary
    """
    if isinstance(dictionary, str):
        if dictionary.isdigit():
            return int(dictionary)
        if dictionary not in ARUCO_DICTIONARIES:
            raise ValueError(f"Unknown ArUco dictionary: {dictionary}")
        return ARUCO_DICTIONARIES[dictionary]
    return int(dictionary)


def get_dictionary(geometry: BoardGeometry) -> cv2.aruco.Dictionary:
    return cv2.aruco.getPredefinedDictionary(resolve_dictionary(geometry.dictionary))


# ============================================================================
# Grid Patterns
# ============================================================================


def corners_for_pattern(
    pattern: PatternType,
    board_size: tuple[int, int],
    square_size: float,
) -> np.ndarray:
    """
    Generate the canonical board points for a grid pattern.

    Points are row-major, matching the order in which OpenCV returns
    detected corners and circle centres; correspondence is positional.

    Args:
        pattern: CHESSBOARD, CIRCLES_GRID or ASYMMETRIC_CIRCLES_GRID
        board_size: (width, height) in points
        square_size: Spacing between adjacent points

    Returns:
        (width * height, 3) float32 array with z = 0

    Raises:
        ValueError: For marker board patterns, which have no positional grid
    """
    width, height = board_size
    rows, cols = np.meshgrid(np.arange(height), np.arange(width), indexing="ij")
    rows = rows.ravel()
    cols = cols.ravel()

    if pattern in (PatternType.CHESSBOARD, PatternType.CIRCLES_GRID):
        x = cols
    elif pattern == PatternType.ASYMMETRIC_CIRCLES_GRID:
        x = 2 * cols + rows % 2
    else:
        raise ValueError(f"{pattern.value} has no positional point grid")

    points = np.zeros((width * height, 3), dtype=np.float32)
    points[:, 0] = x * square_size
    points[:, 1] = rows * square_size
    return points


@lru_cache(maxsize=None)
def grid_points(geometry: BoardGeometry) -> np.ndarray:
    """
    Cached, read-only canonical grid for a grid-pattern board.
    """
    points = corners_for_pattern(geometry.pattern, geometry.board_size, geometry.square_size)
    points.flags.writeable = False
    return points


# ============================================================================
# Marker Boards
# ============================================================================


def create_charuco_board(geometry: BoardGeometry) -> cv2.aruco.CharucoBoard:
    """
    Create an OpenCV CharucoBoard whose inner corners match the geometry.

    Args:
        geometry: Marker-board geometry (width/height in inner corners)

    Returns:
        cv2.aruco.CharucoBoard with (width + 1) x (height + 1) squares
    """
    board = cv2.aruco.CharucoBoard(
        size=(geometry.width + 1, geometry.height + 1),
        squareLength=geometry.square_size,
        markerLength=geometry.marker_size,
        dictionary=get_dictionary(geometry),
    )

    board.setLegacyPattern(geometry.legacy_pattern)

    return board


@lru_cache(maxsize=None)
def marker_corner_table(geometry: BoardGeometry) -> Mapping[int, np.ndarray]:
    """
    Read-only mapping from board corner ID to its 3D position.

    Built once per geometry from the OpenCV board definition.
    """
    if not geometry.pattern.is_marker_board:
        raise ValueError(f"{geometry.pattern.value} is not a marker board")

    corners = np.asarray(create_charuco_board(geometry).getChessboardCorners(), dtype=np.float32)
    corners.flags.writeable = False
    return MappingProxyType({corner_id: corners[corner_id] for corner_id in range(len(corners))})


def corners_for_marker_ids(geometry: BoardGeometry, ids: Sequence[int] | np.ndarray) -> np.ndarray:
    """
    Look up the 3D positions of detected board corners, in the order given.

    Args:
        geometry: Marker-board geometry
        ids: Board corner IDs

    Returns:
        (len(ids), 3) float32 array

    Raises:
        UnknownMarkerIdError: If an ID has no entry in the board table
    """
    table = marker_corner_table(geometry)
    points = np.empty((len(ids), 3), dtype=np.float32)
    for row, corner_id in enumerate(np.asarray(ids).ravel().tolist()):
        try:
            points[row] = table[corner_id]
        except KeyError:
            raise UnknownMarkerIdError(corner_id) from None
    return points


# ============================================================================
# Printable Targets
# ============================================================================


def generate_board_image(
    geometry: BoardGeometry,
    width: int = 1000,
    height: int = 1000,
    margin: int = 20,
) -> np.ndarray:
    """
    Generate an image of the calibration target.

    Args:
        geometry: Board geometry
        width: Image width in pixels
        height: Image height in pixels
        margin: White border around the pattern in pixels

    Returns:
        BGR image as numpy array
    """
    if geometry.pattern.is_marker_board:
        img = create_charuco_board(geometry).generateImage((width, height), marginSize=margin)
    elif geometry.pattern == PatternType.CHESSBOARD:
        img = _render_chessboard(geometry, width, height, margin)
    else:
        img = _render_circles(geometry, width, height, margin)

    # Convert to BGR if grayscale
    if len(img.shape) == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)

    return img


def _render_chessboard(geometry: BoardGeometry, width: int, height: int, margin: int) -> np.ndarray:
    squares_x, squares_y = geometry.width + 1, geometry.height + 1
    cell = min((width - 2 * margin) // squares_x, (height - 2 * margin) // squares_y)
    if cell <= 0:
        raise ValueError(f"Image {width}x{height} too small for a {squares_x}x{squares_y} board")

    checker = (np.add.outer(np.arange(squares_y), np.arange(squares_x)) % 2 == 0)
    pattern = np.kron(checker, np.ones((cell, cell), dtype=bool))

    img = np.full((height, width), 255, dtype=np.uint8)
    top = (height - pattern.shape[0]) // 2
    left = (width - pattern.shape[1]) // 2
    img[top : top + pattern.shape[0], left : left + pattern.shape[1]][pattern] = 0
    return img


def _render_circles(geometry: BoardGeometry, width: int, height: int, margin: int) -> np.ndarray:
    centres = corners_for_pattern(geometry.pattern, geometry.board_size, geometry.square_size)[:, :2]
    extent = centres.max(axis=0)
    spacing = geometry.square_size
    # One spacing of padding on every side of the outermost centres.
    scale = min(
        (width - 2 * margin) / (extent[0] + 2 * spacing),
        (height - 2 * margin) / (extent[1] + 2 * spacing),
    )
    if scale <= 0:
        raise ValueError(f"Image {width}x{height} too small for the circle grid")

    offset = np.array([width, height]) / 2 - (extent / 2) * scale
    radius = max(1, int(round(spacing * scale * 0.3)))

    img = np.full((height, width), 255, dtype=np.uint8)
    for x, y in centres * scale + offset:
        cv2.circle(img, (int(round(x)), int(round(y))), radius, 0, thickness=-1, lineType=cv2.LINE_AA)
    return img
