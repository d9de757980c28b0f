"""
Calibration engine for calicapture.

All functions are pure - they take the frozen dataset and return dataclasses.
No threading, no state management.
"""

from .intrinsic import (
    calibrate_camera,
    compute_reprojection_errors,
    project_points,
)

from .extrinsic import (
    calibrate_stereo,
)

from .output import (
    draw_results,
    write_camera_params,
    write_correspondence_dump,
    write_stereo_params,
)

__all__ = [
    # Intrinsic
    "calibrate_camera",
    "compute_reprojection_errors",
    "project_points",
    # Extrinsic
    "calibrate_stereo",
    # Output
    "draw_results",
    "write_camera_params",
    "write_correspondence_dump",
    "write_stereo_params",
]
