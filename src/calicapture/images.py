"""
Image source: enumerate calibration images on disk and decode them.
"""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from .exceptions import ImageLoadError, InputDirectoryNotFoundError, NoImagesFoundError
from .log import logger


def matches_filters(filename: str, prefix: str, extension: str) -> bool:
    """True if the file name starts with prefix (empty matches all) and ends with extension."""
    return filename.startswith(prefix) and filename.endswith(extension)


def list_images(directory: Path, prefix: str = "", extension: str = ".png") -> list[Path]:
    """
    List calibration images in a directory, sorted by path.

    Args:
        directory: Input directory
        prefix: Required file name prefix (empty matches every file)
        extension: Required file name suffix, e.g. ".png"

    Returns:
        Sorted list of matching regular files (possibly empty)

    Raises:
        InputDirectoryNotFoundError: If directory does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise InputDirectoryNotFoundError(directory)

    paths = sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and matches_filters(path.name, prefix, extension)
    )
    for path in paths:
        logger.debug(f"Adding {path}")
    return paths


def find_images(directory: Path, prefix: str = "", extension: str = ".png") -> list[Path]:
    """
    Like list_images, but an empty result is fatal.

    Raises:
        NoImagesFoundError: If nothing matches the filters
    """
    paths = list_images(directory, prefix, extension)
    if not paths:
        raise NoImagesFoundError(Path(directory), prefix, extension)
    logger.info(f"# images: {len(paths)}")
    return paths


def load_image(path: Path) -> np.ndarray | None:
    """
    Decode an image unchanged (bit depth and channels preserved).

    Returns:
        Image array, or None if the file cannot be decoded
    """
    return cv2.imread(str(path), cv2.IMREAD_UNCHANGED)


def read_frame_size(path: Path) -> tuple[int, int]:
    """
    (width, height) of the image that defines the run's frame size.

    Raises:
        ImageLoadError: If the image cannot be decoded
    """
    image = load_image(path)
    if image is None:
        raise ImageLoadError(Path(path))
    height, width = image.shape[:2]
    return (width, height)
