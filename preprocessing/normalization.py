"""Z-score normalization of accelerometer samples."""

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

AXES = ("x", "y", "z")


class Normalizer:
    """
    Per-channel z-score scaling with fixed, model-bound constants.

    Arithmetic is done in float32, matching the on-device preprocessing.
    """

    def __init__(self, means: Sequence[float], stds: Sequence[float]):
        """
        Initialize normalizer.

        Args:
            means: Per-channel mean (x, y, z) computed at training time
            stds: Per-channel standard deviation (x, y, z)
        """
        if len(means) != len(AXES) or len(stds) != len(AXES):
            raise ValueError(
                f"Expected {len(AXES)} means and stds, got "
                f"{len(means)} and {len(stds)}"
            )

        self.means = np.asarray(means, dtype=np.float32)
        self.stds = np.asarray(stds, dtype=np.float32)
        self.means.setflags(write=False)
        self.stds.setflags(write=False)

    @classmethod
    def from_profile(cls, profile) -> 'Normalizer':
        """Build a normalizer from a NormalizationProfile config node."""
        return cls(profile.means, profile.stds)

    def normalize(self, sample: Sequence[float]) -> np.ndarray:
        """
        Normalize a single (x, y, z) sample.

        Args:
            sample: Raw triaxial reading

        Returns:
            Normalized sample of shape (3,), always finite
        """
        return self.normalize_window(np.asarray(sample).reshape(1, -1))[0]

    def normalize_window(self, window: np.ndarray) -> np.ndarray:
        """
        Normalize every sample of a window.

        Args:
            window: Raw samples of shape (n_samples, 3)

        Returns:
            New read-only float32 array of normalized samples
        """
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            window = np.asarray(window, dtype=np.float32)
            if window.ndim != 2 or window.shape[1] != len(AXES):
                raise ValueError(f"Expected window of shape (n, 3), got {window.shape}")

            normalized = (window - self.means) / self.stds

        # Malformed readings (NaN/Inf) and degenerate constants collapse to 0
        bad = ~np.isfinite(normalized)
        if bad.any():
            logger.debug(f"Replaced {int(bad.sum())} non-finite normalized values with 0.0")
            normalized[bad] = 0.0

        normalized.setflags(write=False)
        return normalized
