"""
Capture pipeline: images -> detections -> correspondences -> dataset.

Frames are processed strictly one after another (one image, or one
synchronized left/right pair, at a time). Per-frame failures are logged and
skipped; they never abort the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

import numpy as np

from .dataset import CalibrationDataset
from .images import load_image, read_frame_size
from .log import logger
from .targets.correspondence import build_correspondence_pair, build_correspondences
from .targets.detection import TargetDetector
from .types import (
    MIN_CALIBRATION_SAMPLES,
    DetectionResult,
    FilePairing,
    FrameOutcome,
    Rejection,
)

# (frame index, decoded images, detections) - one entry per side
FrameCallback = Callable[[int, tuple[np.ndarray, ...], tuple[DetectionResult, ...]], None]


@dataclass(frozen=True, slots=True)
class CaptureReport:
    """
    Result of a capture run: the populated dataset and what happened per frame.
    """

    dataset: CalibrationDataset
    outcomes: tuple[FrameOutcome, ...]
    frame_size: tuple[int, int]  # (width, height)

    @property
    def found_flags(self) -> list[bool]:
        """Per-frame acceptance, in input order."""
        return [outcome.accepted for outcome in self.outcomes]

    @property
    def accepted_paths(self) -> list[tuple[Path, ...]]:
        return [outcome.paths for outcome in self.outcomes if outcome.accepted]


def capture_mono(
    image_paths: Sequence[Path],
    detector: TargetDetector,
    minimum_samples: int = MIN_CALIBRATION_SAMPLES,
    on_frame: FrameCallback | None = None,
) -> CaptureReport:
    """
    Detect the target in every image and accumulate accepted samples.

    Args:
        image_paths: Images of one camera, in processing order
        detector: Detector for the board being imaged
        minimum_samples: Samples needed before calibration may run
        on_frame: Optional hook called after each detection (e.g. display)

    Returns:
        CaptureReport with a mono dataset

    Raises:
        ImageLoadError: If the first image (which sets the frame size) is unreadable
    """
    if not image_paths:
        raise ValueError("capture_mono needs at least one image")

    geometry = detector.geometry
    frame_size = read_frame_size(image_paths[0])
    dataset = CalibrationDataset(stereo=False, minimum_samples=minimum_samples)
    outcomes = []

    for index, path in enumerate(image_paths):
        image = load_image(path)
        if image is None:
            logger.warning(f"Cannot read image {index + 1}, {path}; skipping")
            outcomes.append(FrameOutcome(index, (path,), (False,), False, "unreadable image"))
            continue

        detection = detector.detect(image)
        result = build_correspondences(detection, geometry)

        if isinstance(result, Rejection):
            logger.debug(f"Did not detect {geometry.pattern.value} in image {index + 1}: {result.reason}")
            outcomes.append(FrameOutcome(index, (path,), (detection.found,), False, result.reason))
        else:
            logger.debug(f"Detected {geometry.pattern.value} in image {index + 1}, {path}")
            dataset.accept(result)
            outcomes.append(FrameOutcome(index, (path,), (True,), True))

        if on_frame is not None:
            on_frame(index, (image,), (detection,))

    logger.info(f"Accepted {dataset.sample_count} of {len(image_paths)} images")
    return CaptureReport(dataset=dataset, outcomes=tuple(outcomes), frame_size=frame_size)


def capture_stereo(
    pairing: FilePairing,
    detector: TargetDetector,
    minimum_samples: int = MIN_CALIBRATION_SAMPLES,
    on_frame: FrameCallback | None = None,
) -> CaptureReport:
    """
    Detect the target jointly in every left/right pair.

    A pair contributes a sample only when both sides observe the same board
    points. The same detector (and so the same marker refinement) is applied
    to both sides.

    Args:
        pairing: Validated left/right file pairing
        detector: Detector for the board being imaged
        minimum_samples: Samples needed before calibration may run
        on_frame: Optional hook called after each pair's detections

    Returns:
        CaptureReport with a stereo dataset

    Raises:
        ImageLoadError: If the first left image is unreadable
    """
    if len(pairing) == 0:
        raise ValueError("capture_stereo needs at least one image pair")

    geometry = detector.geometry
    frame_size = read_frame_size(pairing.left_paths[0])
    dataset = CalibrationDataset(stereo=True, minimum_samples=minimum_samples)
    outcomes = []

    for index, (left_path, right_path) in enumerate(pairing):
        paths = (left_path, right_path)
        image_left = load_image(left_path)
        image_right = load_image(right_path)
        if image_left is None or image_right is None:
            logger.warning(f"Cannot read image pair {index + 1}, {left_path} {right_path}; skipping")
            outcomes.append(FrameOutcome(index, paths, (False, False), False, "unreadable image"))
            continue

        detection_left = detector.detect(image_left)
        detection_right = detector.detect(image_right)
        result = build_correspondence_pair(detection_left, detection_right, geometry)
        found = (detection_left.found, detection_right.found)

        if isinstance(result, Rejection):
            logger.debug(f"Did not detect {geometry.pattern.value} in image pair {index + 1}: {result.reason}")
            outcomes.append(FrameOutcome(index, paths, found, False, result.reason))
        else:
            logger.debug(f"Detected {geometry.pattern.value} in image pair {index + 1}")
            dataset.accept(result)
            outcomes.append(FrameOutcome(index, paths, found, True))

        if on_frame is not None:
            on_frame(index, (image_left, image_right), (detection_left, detection_right))

    logger.info(f"Accepted {dataset.sample_count} of {len(pairing)} image pairs")
    return CaptureReport(dataset=dataset, outcomes=tuple(outcomes), frame_size=frame_size)
