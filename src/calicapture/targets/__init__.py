"""
Calibration targets: board geometry, detection and correspondence building.
"""

from .geometry import (
    ARUCO_DICTIONARIES,
    corners_for_marker_ids,
    corners_for_pattern,
    create_charuco_board,
    generate_board_image,
    grid_points,
    marker_corner_table,
)

from .detection import (
    ChessboardDetector,
    CirclesGridDetector,
    MarkerBoardDetector,
    TargetDetector,
    create_detector,
)

from .correspondence import (
    build_correspondence_pair,
    build_correspondences,
)

__all__ = [
    # Geometry
    "ARUCO_DICTIONARIES",
    "corners_for_marker_ids",
    "corners_for_pattern",
    "create_charuco_board",
    "generate_board_image",
    "grid_points",
    "marker_corner_table",
    # Detection
    "ChessboardDetector",
    "CirclesGridDetector",
    "MarkerBoardDetector",
    "TargetDetector",
    "create_detector",
    # Correspondences
    "build_correspondence_pair",
    "build_correspondences",
]
