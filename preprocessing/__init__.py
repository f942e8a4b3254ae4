"""Preprocessing module for streaming accelerometer windows."""

from .features import FEATURE_NAMES, FeatureExtractor
from .matrix import FeatureMatrixBuilder
from .normalization import Normalizer
from .windowing import MalformedSample, WindowAccumulator, subsample

__all__ = ["Normalizer", "WindowAccumulator", "MalformedSample", "subsample",
           "FeatureExtractor", "FEATURE_NAMES", "FeatureMatrixBuilder"]
