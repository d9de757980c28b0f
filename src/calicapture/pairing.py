"""
Stereo file pairing: match left and right camera images by file name.

A stereo capture assumes one right image per left image. Any doubt about that
(empty side, different counts, names that disagree after their prefixes) is
fatal, because a silent shift would corrupt every downstream sample.
"""

from __future__ import annotations

from pathlib import Path

from .exceptions import FilenameMismatchError, NoImagesFoundError, StereoPairingError
from .images import list_images
from .log import logger
from .types import FilePairing


def pair_image_lists(
    left_paths: list[Path],
    right_paths: list[Path],
    prefix_left: str,
    prefix_right: str,
) -> FilePairing:
    """
    Pair two image lists by index after sorting, validating file names.

    Args:
        left_paths: Left camera images
        right_paths: Right camera images
        prefix_left: Prefix stripped from left file names before comparison
        prefix_right: Prefix stripped from right file names before comparison

    Returns:
        FilePairing in sorted order

    Raises:
        StereoPairingError: If the lists differ in length
        FilenameMismatchError: If any pair's suffixes differ
    """
    if len(left_paths) != len(right_paths):
        raise StereoPairingError(
            f"# images from left and right cameras do not match: "
            f"{len(left_paths)} left, {len(right_paths)} right"
        )

    left_sorted = sorted(left_paths, key=str)
    right_sorted = sorted(right_paths, key=str)

    mismatched = []
    for index, (left, right) in enumerate(zip(left_sorted, right_sorted)):
        if left.name[len(prefix_left):] != right.name[len(prefix_right):]:
            logger.error(f"Filenames do not match: {left} {right}")
            mismatched.append(index)

    if mismatched:
        first = mismatched[0]
        raise FilenameMismatchError(first, left_sorted[first], right_sorted[first], len(mismatched))

    return FilePairing(
        pairs=tuple(zip(left_sorted, right_sorted)),
        prefix_left=prefix_left,
        prefix_right=prefix_right,
    )


def pair_stereo_images(
    directory: Path,
    prefix_left: str = "left",
    prefix_right: str = "right",
    extension: str = ".bmp",
) -> FilePairing:
    """
    Discover and pair left/right images in one directory.

    Raises:
        InputDirectoryNotFoundError: If directory does not exist
        NoImagesFoundError: If either side has no images
        StereoPairingError: If the sides cannot be paired one-to-one
    """
    left_paths = list_images(directory, prefix_left, extension)
    right_paths = list_images(directory, prefix_right, extension)

    if not left_paths:
        raise NoImagesFoundError(Path(directory), prefix_left, extension)
    if not right_paths:
        raise NoImagesFoundError(Path(directory), prefix_right, extension)

    pairing = pair_image_lists(left_paths, right_paths, prefix_left, prefix_right)
    logger.info(f"# image pairs: {len(pairing)}")
    return pairing
