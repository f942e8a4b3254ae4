"""Configuration for the streaming detection pipeline."""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from omegaconf import OmegaConf

from preprocessing.features import FEATURE_SETS
from preprocessing.matrix import RAW_CHANNEL_MODES
from preprocessing.windowing import FLUSH_POLICIES

logger = logging.getLogger(__name__)

# Activity classes of the 16-way model
ACTIVITY_CLASSES = [
    'walking', 'standing', 'sitting', 'lying', 'running',
    'jumping', 'sitting_down', 'standing_up', 'picking_up',
    'bending', 'stairs_up', 'stairs_down', 'transition',
    'fall_forward', 'fall_backward', 'fall_lateral'
]

FALL_CLASSES = ['fall_forward', 'fall_backward', 'fall_lateral']

MODEL_VARIANTS = ("binary", "multiclass")


class ConfigError(ValueError):
    """Raised when a pipeline configuration is inconsistent."""


@dataclass
class NormalizationProfile:
    """Per-channel z-score constants of the deployed model"""
    means: List[float] = field(
        default_factory=lambda: [-0.00587745, -0.60819228, -0.09736887])
    stds: List[float] = field(
        default_factory=lambda: [0.40432001, 0.66772087, 0.4787974])

    def __post_init__(self):
        if len(self.means) != 3 or len(self.stds) != 3:
            raise ConfigError("Normalization profile needs 3 means and 3 stds")
        if any(not math.isfinite(s) or s <= 0 for s in self.stds):
            raise ConfigError(f"Standard deviations must be positive: {self.stds}")


@dataclass
class PipelineConfig:
    """Configuration for windowing, features, model I/O and decisions"""
    window_size: int = 200  # samples per window (N)
    flush_policy: str = "count"  # 'count' or 'time'
    window_duration_ms: float = 1000.0  # collection period for 'time'
    feature_set: str = "statistical"  # 'statistical' or 'none'
    raw_channels: str = "absolute"  # 'absolute' or 'signed'
    feature_dim: Optional[int] = None  # declared D, checked when set
    normalization: NormalizationProfile = field(default_factory=NormalizationProfile)

    model_variant: str = "binary"  # 'binary' or 'multiclass'
    model_path: Optional[str] = None
    model_output_key: Optional[str] = None  # for models returning a dict
    class_labels: List[str] = field(default_factory=lambda: list(ACTIVITY_CLASSES))
    fall_labels: List[str] = field(default_factory=lambda: list(FALL_CLASSES))
    score_labels: List[str] = field(default_factory=lambda: ["fall", "adl"])

    max_consecutive_failures: int = 5

    def __post_init__(self):
        if self.window_size < 1:
            raise ConfigError(f"window_size must be positive, got {self.window_size}")
        if self.flush_policy not in FLUSH_POLICIES:
            raise ConfigError(f"Unknown flush policy: {self.flush_policy}")
        if self.window_duration_ms <= 0:
            raise ConfigError("window_duration_ms must be positive")
        if self.feature_set not in FEATURE_SETS:
            raise ConfigError(f"Unknown feature set: {self.feature_set}")
        if self.raw_channels not in RAW_CHANNEL_MODES:
            raise ConfigError(f"Unknown raw channel mode: {self.raw_channels}")
        if self.model_variant not in MODEL_VARIANTS:
            raise ConfigError(f"Unknown model variant: {self.model_variant}")

        expected_dim = 3 + len(FEATURE_SETS[self.feature_set])
        if self.feature_dim is not None and self.feature_dim != expected_dim:
            raise ConfigError(
                f"Declared feature_dim={self.feature_dim} but feature set "
                f"'{self.feature_set}' produces {expected_dim} columns"
            )

        if self.model_variant == "multiclass":
            if not self.class_labels:
                raise ConfigError("Multiclass models need class_labels")
            unknown = set(self.fall_labels) - set(self.class_labels)
            if unknown:
                raise ConfigError(f"Fall labels not in class_labels: {sorted(unknown)}")
        if len(self.score_labels) != 2:
            raise ConfigError("score_labels must name the fall and activity scores")
        if self.max_consecutive_failures < 1:
            raise ConfigError("max_consecutive_failures must be at least 1")

    @property
    def input_dim(self) -> int:
        """Columns D of the model input."""
        return 3 + len(FEATURE_SETS[self.feature_set])

    @property
    def input_shape(self) -> tuple:
        return (1, self.window_size, self.input_dim)

    @property
    def output_shape(self) -> tuple:
        if self.model_variant == "binary":
            return (1, 2)
        return (1, len(self.class_labels))


def load_config(path: Optional[Union[str, Path]] = None,
                overrides: Optional[Sequence[str]] = None) -> PipelineConfig:
    """
    Load a pipeline configuration.

    Args:
        path: Optional YAML file; unset keys keep their defaults
        overrides: Optional dotlist overrides, e.g. ["window_size=50"]

    Returns:
        Validated PipelineConfig
    """
    schema = OmegaConf.structured(PipelineConfig)
    configs = [schema]

    if path is not None:
        configs.append(OmegaConf.load(path))
    if overrides:
        configs.append(OmegaConf.from_dotlist(list(overrides)))

    merged = OmegaConf.merge(*configs)
    config = OmegaConf.to_object(merged)

    logger.info(
        f"Loaded pipeline config: N={config.window_size}, D={config.input_dim}, "
        f"variant={config.model_variant}, flush={config.flush_policy}"
    )
    return config
