"""
Calibration dataset: the append-only collection of accepted samples.

The accumulator has a single writer (the capture pipeline). handoff() freezes
it and returns the immutable snapshot the calibration engine reads.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .exceptions import DatasetFrozenError, InsufficientSamplesError
from .types import (
    MIN_CALIBRATION_SAMPLES,
    CorrespondencePair,
    CorrespondenceSet,
    Sample,
)


@dataclass(frozen=True, slots=True)
class FrozenDataset:
    """
    Immutable snapshot of accepted samples, in acceptance order.
    """

    samples: tuple[Sample, ...]
    stereo: bool = False

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def object_points(self) -> list[np.ndarray]:
        """Per-sample (n, 3) float32 board points."""
        return [sample.object_points for sample in self.samples]

    def image_points(self, side: str = "left") -> list[np.ndarray]:
        """
        Per-sample (n, 2) float32 image points.

        Args:
            side: "left" or "right"; mono datasets only have "left"
        """
        if not self.stereo:
            if side != "left":
                raise ValueError("Mono datasets have a single (left) side")
            return [sample.image_points for sample in self.samples]
        return [getattr(sample, side).image_points for sample in self.samples]


class CalibrationDataset:
    """
    Ordered, append-only accumulator of correspondence sets (mono) or
    correspondence pairs (stereo).
    """

    def __init__(self, stereo: bool = False, minimum_samples: int = MIN_CALIBRATION_SAMPLES):
        if minimum_samples < 1:
            raise ValueError(f"minimum_samples must be >= 1, got {minimum_samples}")
        self.stereo = stereo
        self.minimum_samples = minimum_samples
        self._samples: list[Sample] = []
        self._frozen: FrozenDataset | None = None

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def accept(self, sample: Sample) -> None:
        """
        Append one accepted sample.

        Raises:
            DatasetFrozenError: If called after handoff()
            TypeError: If the sample kind does not match the dataset mode
        """
        if self._frozen is not None:
            raise DatasetFrozenError("Cannot accept samples after the dataset was handed off")

        expected = CorrespondencePair if self.stereo else CorrespondenceSet
        if not isinstance(sample, expected):
            raise TypeError(f"Expected {expected.__name__}, got {type(sample).__name__}")

        self._samples.append(sample)

    def ready_for_calibration(self) -> bool:
        return self.sample_count >= self.minimum_samples

    def handoff(self) -> FrozenDataset:
        """
        Freeze the dataset and return the snapshot for calibration.

        Raises:
            InsufficientSamplesError: If fewer than minimum_samples were accepted
        """
        if self._frozen is None:
            if not self.ready_for_calibration():
                raise InsufficientSamplesError(self.sample_count, self.minimum_samples)
            self._frozen = FrozenDataset(samples=tuple(self._samples), stereo=self.stereo)
        return self._frozen
