"""Assemble the per-timestep model input from a window and its features."""

import logging
from typing import Dict, Sequence

import numpy as np

from .normalization import AXES

logger = logging.getLogger(__name__)

RAW_CHANNEL_MODES = ("absolute", "signed")


class FeatureMatrixBuilder:
    """Build the (N, D) matrix: raw channel columns then broadcast features."""

    def __init__(self, window_size: int, feature_names: Sequence[str],
                 raw_channels: str = "absolute"):
        """
        Initialize matrix builder.

        Args:
            window_size: Rows N of the matrix
            feature_names: Feature columns in training-time order
            raw_channels: 'absolute' to feed |x|, |y|, |z| or 'signed'
                to feed the normalized values unchanged
        """
        if raw_channels not in RAW_CHANNEL_MODES:
            raise ValueError(f"Unknown raw channel mode: {raw_channels}")

        self.window_size = window_size
        self.feature_names = tuple(feature_names)
        self.raw_channels = raw_channels

    @property
    def feature_dim(self) -> int:
        return len(AXES) + len(self.feature_names)

    @property
    def shape(self):
        return (self.window_size, self.feature_dim)

    def build(self, window: np.ndarray, features: Dict[str, float]) -> np.ndarray:
        """
        Build the model input matrix for one window.

        Args:
            window: Normalized samples of shape (window_size, 3)
            features: Feature vector of this window

        Returns:
            Read-only float32 array of shape (window_size, feature_dim)
        """
        window = np.asarray(window, dtype=np.float64)
        if window.shape != (self.window_size, len(AXES)):
            raise ValueError(
                f"Expected window of shape {(self.window_size, len(AXES))}, "
                f"got {window.shape}"
            )

        missing = [name for name in self.feature_names if name not in features]
        if missing:
            raise KeyError(f"Missing features: {missing}")

        matrix = np.empty(self.shape, dtype=np.float32)
        matrix[:, :len(AXES)] = np.abs(window) if self.raw_channels == "absolute" else window

        if self.feature_names:
            row = np.array([features[name] for name in self.feature_names], dtype=np.float64)
            matrix[:, len(AXES):] = row  # Same context row at every timestep

        matrix.setflags(write=False)
        return matrix
