#!/usr/bin/env python3
"""
calicapture CLI - capture calibration samples from image folders and calibrate.

Usage:
    calicapture intrinsic -i calibrationdata -p left- -e .png
    calicapture stereo -i images --prefix-left left --prefix-right right -e .bmp
    calicapture board -t charuco -w 5 -H 7 -s 0.04 --marker-size 0.02 -o board.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

from .calibration import (
    calibrate_camera,
    calibrate_stereo,
    compute_reprojection_errors,
    draw_results,
    write_camera_params,
    write_correspondence_dump,
    write_stereo_params,
)
from .config import (
    apply_overrides,
    default_intrinsic_config,
    default_stereo_config,
    load_capture_config,
    load_detector_parameters,
)
from .dataset import FrozenDataset
from .exceptions import CaptureError, ConfigError
from .images import find_images, load_image
from .log import configure_logging, logger
from .pairing import pair_stereo_images
from .pipeline import FrameCallback, capture_mono, capture_stereo
from .targets import TargetDetector, create_detector, generate_board_image
from .targets.geometry import resolve_dictionary
from .types import CameraCalibration, CameraModel, CaptureConfig, PatternType


# ============================================================================
# Arguments
# ============================================================================


def _add_board_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", type=Path, default=None, help="TOML run configuration.")
    parser.add_argument(
        "-t",
        "--pattern",
        type=str.lower,
        default=None,
        choices=[p.value for p in PatternType],
        help="Calibration pattern.",
    )
    parser.add_argument("-w", "--width", type=int, default=None, help="Inner corners (or circles) along x.")
    parser.add_argument("-H", "--height", type=int, default=None, help="Inner corners (or circles) along y.")
    parser.add_argument("-s", "--size", dest="square_size", type=float, default=None, help="Square size.")
    parser.add_argument("--marker-size", type=float, default=None, help="ArUco marker size (ChArUco boards).")
    parser.add_argument("-d", "--dictionary", type=str, default=None, help="ArUco dictionary id or name.")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Log every frame.")


def _add_capture_arguments(parser: argparse.ArgumentParser) -> None:
    _add_board_arguments(parser)
    parser.add_argument("-i", "--input", dest="input_dir", type=Path, default=None, help="Input image directory.")
    parser.add_argument("-e", "--extension", type=str, default=None, help="Image file extension.")
    parser.add_argument(
        "-m",
        "--camera-model",
        type=str.lower,
        default=None,
        choices=[m.value for m in CameraModel],
        help="Camera model to fit.",
    )
    parser.add_argument("--dp", dest="detector_params", type=Path, default=None, help="Detector parameters file.")
    parser.add_argument(
        "--no-refine",
        dest="refine_markers",
        action="store_false",
        default=None,
        help="Skip re-detection of rejected ArUco markers.",
    )
    parser.add_argument("--min-samples", dest="minimum_samples", type=int, default=None)
    parser.add_argument("-o", "--output", dest="output_dir", type=Path, default=None, help="Output directory.")
    parser.add_argument("--view-results", action="store_true", default=None, help="Show detections and reprojections.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="calicapture", description="Camera calibration capture pipeline.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    intrinsic = sub.add_parser("intrinsic", help="Calibrate one camera from a folder of images.")
    _add_capture_arguments(intrinsic)
    intrinsic.add_argument("-p", "--prefix", dest="prefix_left", type=str, default=None, help="Image filename prefix.")
    intrinsic.add_argument("--camera-name", dest="camera_name_left", type=str, default=None)

    stereo = sub.add_parser("stereo", help="Calibrate a stereo rig from left/right image pairs.")
    _add_capture_arguments(stereo)
    stereo.add_argument("--prefix-left", type=str, default=None, help="Left image filename prefix.")
    stereo.add_argument("--prefix-right", type=str, default=None, help="Right image filename prefix.")
    stereo.add_argument("--camera-name-left", type=str, default=None)
    stereo.add_argument("--camera-name-right", type=str, default=None)

    board = sub.add_parser("board", help="Render a calibration board image.")
    _add_board_arguments(board)
    board.add_argument("-o", "--output", type=Path, default=Path("board.png"), help="Output image file.")
    board.add_argument("--pixels", type=int, nargs=2, default=(1000, 1000), metavar=("W", "H"))
    board.add_argument("--margin", type=int, default=20, help="Margin in pixels.")

    return parser


def build_config(args: argparse.Namespace, defaults: CaptureConfig) -> CaptureConfig:
    """
    Merge defaults, an optional TOML file and command-line flags (highest wins).

    Raises:
        ConfigError: On an unreadable config file or an invalid board
    """
    config = load_capture_config(args.config, defaults) if args.config else defaults

    overrides = {
        key: value
        for key, value in vars(args).items()
        if key not in ("cmd", "config", "output", "pixels", "margin")
    }
    if overrides.get("pattern"):
        overrides["pattern"] = PatternType.from_name(overrides["pattern"])
    if overrides.get("camera_model"):
        overrides["camera_model"] = CameraModel.from_name(overrides["camera_model"])

    try:
        if overrides.get("dictionary") is not None:
            overrides["dictionary"] = resolve_dictionary(overrides["dictionary"])
        return apply_overrides(config, **overrides)
    except ValueError as e:
        raise ConfigError(f"Invalid board: {e}") from e


# ============================================================================
# Display
# ============================================================================


def _show_detections(detector: TargetDetector) -> FrameCallback:
    def on_frame(index, images, detections):
        for side, (image, detection) in enumerate(zip(images, detections)):
            cv2.imshow(f"detection {side}", detector.sketch(image, detection))
        cv2.waitKey(50)

    return on_frame


def caption_results(images: list[np.ndarray], paths: list[Path]) -> list[np.ndarray]:
    """Stamp each drawn result with the file it came from."""
    for path, image in zip(paths, images):
        cv2.putText(image, str(path), (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2, cv2.LINE_AA)
    return images


def _view_results(
    calibration: CameraCalibration,
    dataset: FrozenDataset,
    paths: list[Path],
    side: str,
) -> None:
    images = [load_image(path) for path in paths]
    drawn = caption_results(draw_results(calibration, dataset, images, side), paths)

    for image in drawn:
        cv2.imshow(calibration.name, image)
        cv2.waitKey(0)
    cv2.destroyAllWindows()


# ============================================================================
# Commands
# ============================================================================


def run_intrinsic(config: CaptureConfig) -> None:
    logger.info(f"Camera model: {config.camera_model.display_name}")
    logger.info(f"Calibration pattern: {config.board.pattern.value}")

    parameters = load_detector_parameters(config.detector_params) if config.detector_params else None
    paths = find_images(config.input_dir, config.prefix_left, config.extension)
    detector = create_detector(config.board, parameters, config.refine_markers)

    on_frame = _show_detections(detector) if config.view_results else None
    report = capture_mono(paths, detector, config.minimum_samples, on_frame)
    dataset = report.dataset.handoff()

    name = config.camera_name_left
    calibration = calibrate_camera(dataset, report.frame_size, config.camera_model, name)
    logger.info(f"Reprojection error of {name}: {calibration.error:.4f} px")
    for view, error in compute_reprojection_errors(calibration, dataset).items():
        logger.debug(f"Sample {view + 1}: {error:.4f} px")

    write_camera_params(calibration, config.output_dir / f"{name}_camera_calib.yaml")
    write_correspondence_dump(dataset, config.output_dir / f"{name}_chessboard_data.npz")

    if config.view_results:
        _view_results(calibration, dataset, [p[0] for p in report.accepted_paths], "left")


def run_stereo(config: CaptureConfig) -> None:
    logger.info(f"Camera model: {config.camera_model.display_name}")
    logger.info(f"Calibration pattern: {config.board.pattern.value}")

    parameters = load_detector_parameters(config.detector_params) if config.detector_params else None
    pairing = pair_stereo_images(config.input_dir, config.prefix_left, config.prefix_right, config.extension)
    detector = create_detector(config.board, parameters, config.refine_markers)

    on_frame = _show_detections(detector) if config.view_results else None
    report = capture_stereo(pairing, detector, config.minimum_samples, on_frame)
    dataset = report.dataset.handoff()

    names = (config.camera_name_left, config.camera_name_right)
    stereo = calibrate_stereo(dataset, report.frame_size, config.camera_model, names)
    logger.info(f"Stereo reprojection error: {stereo.error:.4f} px")
    logger.info(f"Baseline: {np.linalg.norm(stereo.translation):.4f}")

    write_stereo_params(stereo, config.output_dir)
    write_correspondence_dump(dataset, config.output_dir / "stereo_chessboard_data.npz")

    if config.view_results:
        _view_results(stereo.left, dataset, [p[0] for p in report.accepted_paths], "left")
        _view_results(stereo.right, dataset, [p[1] for p in report.accepted_paths], "right")


def run_board(config: CaptureConfig, output: Path, pixels: tuple[int, int], margin: int) -> None:
    image = generate_board_image(config.board, pixels[0], pixels[1], margin)
    output.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output), image):
        raise CaptureError(f"Cannot write board image {output}")
    logger.info(f"Wrote {config.board.pattern.value} board to {output}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(bool(args.verbose))

    defaults = default_stereo_config() if args.cmd == "stereo" else default_intrinsic_config()

    try:
        config = build_config(args, defaults)
        if config.verbose:
            configure_logging(True)

        if args.cmd == "intrinsic":
            run_intrinsic(config)
        elif args.cmd == "stereo":
            run_stereo(config)
        else:
            run_board(config, args.output, tuple(args.pixels), args.margin)
    except CaptureError as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
