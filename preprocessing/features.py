"""Statistical features computed over a normalized accelerometer window.

The names and their order below are the column layout the models were
trained with. Changing either silently changes what the model sees.
"""

import logging
from typing import Dict, List

import numpy as np
from scipy import stats

from .normalization import AXES

logger = logging.getLogger(__name__)

AXIS_STATS = ("mean", "median", "std", "skew", "kurtosis", "min", "max")

MOTION_FEATURES = (
    "mag_mean", "mag_std",
    "theta_mean", "theta_std", "theta_skew", "theta_kurtosis",
    "mag_min", "mag_max",
    "mag_zero_crossing_rate", "mag_diff_min_max",
    "mag_slope", "mag_abs_slope",
    "avg_acc_rate",
)


def _axis_feature_names() -> List[str]:
    names = []
    for axis in AXES:
        for prefix in ("", "abs_"):
            names.extend(f"{axis}_{prefix}{stat}" for stat in AXIS_STATS)
    return names


FEATURE_NAMES = tuple(_axis_feature_names()) + MOTION_FEATURES

FEATURE_SETS = {
    "statistical": FEATURE_NAMES,
    "none": (),
}


def _finite(value: float) -> float:
    value = float(value)
    return value if np.isfinite(value) else 0.0


def mean(values: np.ndarray) -> float:
    if len(values) == 0:
        return 0.0
    return _finite(np.mean(values))


def median(values: np.ndarray) -> float:
    if len(values) == 0:
        return 0.0
    return _finite(np.median(values))


def std(values: np.ndarray) -> float:
    """Population standard deviation, 0 for one sample or fewer."""
    if len(values) <= 1:
        return 0.0
    return _finite(np.std(values))


def _central_moment2(values: np.ndarray) -> float:
    return float(np.mean((values - np.mean(values)) ** 2))


def skewness(values: np.ndarray) -> float:
    """Third standardized moment, 0 for zero-variance input."""
    if len(values) <= 1 or _central_moment2(values) == 0.0:
        return 0.0
    return _finite(stats.skew(values, bias=True))


def kurtosis(values: np.ndarray) -> float:
    """Fourth standardized moment (not excess), 0 for zero-variance input."""
    if len(values) <= 1 or _central_moment2(values) == 0.0:
        return 0.0
    return _finite(stats.kurtosis(values, fisher=False, bias=True))


def zero_crossing_rate(values: np.ndarray) -> float:
    """
    Fraction of sign changes between adjacent samples.

    The count of crossing pairs is divided by the number of samples, not
    the number of adjacent pairs; the trained models saw this ratio.
    """
    if len(values) == 0:
        return 0.0
    crossings = np.count_nonzero(values[:-1] * values[1:] < 0)
    return _finite(crossings / len(values))


def slope(values: np.ndarray) -> float:
    """Least-squares slope of values against their sample index."""
    if len(values) == 0:
        return 0.0
    t = np.arange(len(values), dtype=np.float64)
    t_centered = t - t.mean()
    denominator = float(np.sum(t_centered ** 2))
    if denominator == 0.0:
        return 0.0
    return _finite(np.sum(t_centered * (values - np.mean(values))) / denominator)


def average_rate(values: np.ndarray) -> float:
    """Mean absolute difference between consecutive samples."""
    if len(values) < 2:
        return 0.0
    return _finite(np.mean(np.abs(np.diff(values))))


def _axis_stats(values: np.ndarray) -> Dict[str, float]:
    return {
        "mean": mean(values),
        "median": median(values),
        "std": std(values),
        "skew": skewness(values),
        "kurtosis": kurtosis(values),
        "min": _finite(np.min(values)) if len(values) else 0.0,
        "max": _finite(np.max(values)) if len(values) else 0.0,
    }


class FeatureExtractor:
    """Compute the engineered feature vector of a normalized window."""

    def __init__(self, feature_set: str = "statistical"):
        """
        Initialize feature extractor.

        Args:
            feature_set: 'statistical' for the full vector, 'none' for
                models that consume raw channels only
        """
        if feature_set not in FEATURE_SETS:
            raise ValueError(f"Unknown feature set: {feature_set}")

        self.feature_set = feature_set
        self.feature_names = FEATURE_SETS[feature_set]

    @property
    def num_features(self) -> int:
        return len(self.feature_names)

    def extract(self, window: np.ndarray) -> Dict[str, float]:
        """
        Extract features from a window.

        Args:
            window: Normalized samples of shape (n_samples, 3)

        Returns:
            Feature name to value mapping in FEATURE_NAMES order, no NaNs
        """
        if not self.feature_names:
            return {}

        window = np.asarray(window, dtype=np.float64)
        if window.ndim != 2 or window.shape[1] != len(AXES):
            raise ValueError(f"Expected window of shape (n, 3), got {window.shape}")

        computed: Dict[str, float] = {}

        for i, axis in enumerate(AXES):
            column = window[:, i]
            for prefix, values in (("", column), ("abs_", np.abs(column))):
                for stat, value in _axis_stats(values).items():
                    computed[f"{axis}_{prefix}{stat}"] = value

        x, y, z = window[:, 0], window[:, 1], window[:, 2]
        magnitude = np.sqrt(x ** 2 + y ** 2 + z ** 2)
        theta = np.arctan2(y, x)

        mag_min = _finite(np.min(magnitude)) if len(magnitude) else 0.0
        mag_max = _finite(np.max(magnitude)) if len(magnitude) else 0.0
        mag_slope = slope(magnitude)

        computed.update({
            "mag_mean": mean(magnitude),
            "mag_std": std(magnitude),
            "theta_mean": mean(theta),
            "theta_std": std(theta),
            "theta_skew": skewness(theta),
            "theta_kurtosis": kurtosis(theta),
            "mag_min": mag_min,
            "mag_max": mag_max,
            "mag_zero_crossing_rate": zero_crossing_rate(magnitude),
            "mag_diff_min_max": _finite(mag_max - mag_min),
            "mag_slope": mag_slope,
            "mag_abs_slope": abs(mag_slope),
            "avg_acc_rate": average_rate(magnitude),
        })

        return {name: computed[name] for name in self.feature_names}

    def to_array(self, features: Dict[str, float]) -> np.ndarray:
        """Flatten a feature mapping into the training-time column order."""
        missing = [name for name in self.feature_names if name not in features]
        if missing:
            raise KeyError(f"Missing features: {missing}")
        return np.array([features[name] for name in self.feature_names], dtype=np.float64)
