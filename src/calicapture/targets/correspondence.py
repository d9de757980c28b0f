"""
Correspondence building: detections + board geometry -> 2D-3D sets.

Pure functions. Frames that cannot contribute a sample produce a Rejection,
never an exception.
"""

from __future__ import annotations

import numpy as np

from ..types import (
    BoardGeometry,
    CorrespondencePair,
    CorrespondenceSet,
    DetectionResult,
    Rejection,
)
from .geometry import corners_for_marker_ids, grid_points


# ============================================================================
# Mono
# ============================================================================


def build_correspondences(
    detection: DetectionResult,
    geometry: BoardGeometry,
) -> CorrespondenceSet | Rejection:
    """
    Pair detected image points with their board points.

    Grid patterns pair by position (both sequences are row-major); marker
    boards look each interpolated corner ID up in the board table.

    Args:
        detection: Detection in one image
        geometry: Board the detection was made against

    Returns:
        CorrespondenceSet, or Rejection with the reason
    """
    if not detection.found or detection.point_count == 0:
        return Rejection("target not found")

    image_points = detection.points.astype(np.float32)

    if geometry.pattern.is_marker_board:
        if detection.ids is None:
            return Rejection("marker detection without corner ids")
        object_points = corners_for_marker_ids(geometry, detection.ids)
    else:
        if detection.point_count != geometry.point_count:
            return Rejection(
                f"partial detection: {detection.point_count} of {geometry.point_count} points"
            )
        object_points = np.array(grid_points(geometry))

    return CorrespondenceSet(image_points=image_points, object_points=object_points)


# ============================================================================
# Stereo
# ============================================================================


def build_correspondence_pair(
    left: DetectionResult,
    right: DetectionResult,
    geometry: BoardGeometry,
) -> CorrespondencePair | Rejection:
    """
    Build a stereo sample whose two sides observe identical board points.

    Grid patterns need a full detection on both sides. Marker boards need
    the same set of interpolated corner IDs on both sides, covering the
    whole board; the right points are reordered into the left ID order so
    that both sides share one object point list.

    Args:
        left: Detection in the left image
        right: Detection in the right image
        geometry: Board both detections were made against

    Returns:
        CorrespondencePair, or Rejection with the reason
    """
    if not left.found or not right.found:
        sides = [name for name, det in (("left", left), ("right", right)) if not det.found]
        return Rejection(f"target not found in {' and '.join(sides)} image")

    if not geometry.pattern.is_marker_board:
        left_set = build_correspondences(left, geometry)
        right_set = build_correspondences(right, geometry)
        for rejection in (left_set, right_set):
            if isinstance(rejection, Rejection):
                return rejection
        return CorrespondencePair(left=left_set, right=right_set)

    if left.ids is None or right.ids is None:
        return Rejection("marker detection without corner ids")

    ids_left = left.ids.ravel().tolist()
    ids_right = right.ids.ravel().tolist()
    if set(ids_left) != set(ids_right):
        return Rejection(
            f"corner ids differ between sides ({len(ids_left)} left, {len(ids_right)} right)"
        )
    if len(ids_left) != geometry.point_count:
        return Rejection(f"partial board: {len(ids_left)} of {geometry.point_count} corners")

    # Right rows in the left ID order
    right_row = {corner_id: row for row, corner_id in enumerate(ids_right)}
    order = [right_row[corner_id] for corner_id in ids_left]

    object_points = corners_for_marker_ids(geometry, ids_left)
    return CorrespondencePair(
        left=CorrespondenceSet(
            image_points=left.points.astype(np.float32),
            object_points=object_points,
        ),
        right=CorrespondenceSet(
            image_points=right.points[order].astype(np.float32),
            object_points=object_points.copy(),
        ),
    )
