"""Tests for statistical feature extraction."""

import numpy as np
import pytest

from preprocessing import FEATURE_NAMES, FeatureExtractor
from preprocessing.features import (average_rate, kurtosis, median, skewness,
                                    slope, std, zero_crossing_rate)


class TestStatistics:
    """Test individual statistic definitions."""

    def test_median_even_and_odd(self):
        assert median(np.array([1.0, 2.0, 3.0, 4.0])) == 2.5
        assert median(np.array([1.0, 2.0, 3.0])) == 2.0

    def test_constant_sequence_is_degenerate(self):
        values = np.full(50, 0.7)
        assert std(values) == 0.0
        assert skewness(values) == 0.0
        assert kurtosis(values) == 0.0

    def test_std_is_population(self):
        values = np.array([1.0, 2.0, 3.0, 4.0])
        assert std(values) == pytest.approx(np.sqrt(1.25))

    def test_std_of_single_value(self):
        assert std(np.array([3.0])) == 0.0

    def test_moments_closed_form(self):
        values = np.array([0.0, 0.0, 0.0, 4.0])
        centered = values - values.mean()
        m2 = np.mean(centered ** 2)

        assert skewness(values) == pytest.approx(np.mean(centered ** 3) / m2 ** 1.5)
        assert kurtosis(values) == pytest.approx(np.mean(centered ** 4) / m2 ** 2)

    def test_zero_crossing_rate_uses_window_length(self):
        # 3 of 3 adjacent pairs cross, but the ratio is taken over the 4
        # samples rather than the 3 pairs; models were trained on 0.75
        assert zero_crossing_rate(np.array([1.0, -1.0, 1.0, -1.0])) == 0.75

    def test_zero_crossing_rate_ignores_zero_products(self):
        assert zero_crossing_rate(np.array([1.0, 0.0, -1.0, 2.0])) == 0.25

    def test_slope(self):
        t = np.arange(10, dtype=float)
        assert slope(3.0 * t + 1.0) == pytest.approx(3.0)
        assert slope(np.array([5.0])) == 0.0

    def test_average_rate(self):
        assert average_rate(np.array([1.0, 3.0, 2.0])) == pytest.approx(1.5)
        assert average_rate(np.array([1.0])) == 0.0


class TestFeatureExtractor:
    """Test full feature vector extraction."""

    def setup_method(self):
        """Setup test fixtures."""
        self.extractor = FeatureExtractor()

    def test_feature_order_and_cardinality(self):
        features = self.extractor.extract(np.random.randn(200, 3))

        assert len(FEATURE_NAMES) == 55
        assert tuple(features) == FEATURE_NAMES
        assert FEATURE_NAMES[:3] == ("x_mean", "x_median", "x_std")
        assert FEATURE_NAMES[7] == "x_abs_mean"
        assert FEATURE_NAMES[14] == "y_mean"
        assert FEATURE_NAMES[-1] == "avg_acc_rate"

    def test_alternating_window_means(self):
        """Test per-axis means of a window alternating between two vectors."""
        a = np.array([0.5, -1.0, 2.0])
        b = np.array([1.5, 3.0, -0.5])
        window = np.array([a if i % 2 == 0 else b for i in range(50)])

        features = self.extractor.extract(window)
        expected = (a + b) / 2

        assert features["x_mean"] == pytest.approx(expected[0])
        assert features["y_mean"] == pytest.approx(expected[1])
        assert features["z_mean"] == pytest.approx(expected[2])
        assert features["x_abs_mean"] == pytest.approx((abs(a[0]) + abs(b[0])) / 2)
        # Two-point distribution: population std is half the gap
        assert features["y_std"] == pytest.approx(abs(a[1] - b[1]) / 2)
        assert features["y_skew"] == pytest.approx(0.0, abs=1e-9)
        assert features["y_kurtosis"] == pytest.approx(1.0)

    def test_motion_features(self):
        window = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 1.0], [6.0, 8.0, 0.0]])
        features = self.extractor.extract(window)

        assert features["mag_min"] == pytest.approx(1.0)
        assert features["mag_max"] == pytest.approx(10.0)
        assert features["mag_diff_min_max"] == pytest.approx(9.0)
        assert features["mag_mean"] == pytest.approx(16.0 / 3)
        assert features["mag_slope"] == pytest.approx(2.5)
        assert features["mag_abs_slope"] == pytest.approx(2.5)
        assert features["avg_acc_rate"] == pytest.approx(6.5)
        assert features["mag_zero_crossing_rate"] == 0.0
        assert features["theta_mean"] == pytest.approx(2 * np.arctan2(4.0, 3.0) / 3)

    def test_constant_window_has_no_nan(self):
        features = self.extractor.extract(np.zeros((200, 3)))
        values = np.array(list(features.values()))

        assert np.all(np.isfinite(values))
        assert features["x_kurtosis"] == 0.0
        assert features["theta_skew"] == 0.0

    def test_deterministic(self):
        window = np.random.randn(200, 3)
        assert self.extractor.extract(window) == self.extractor.extract(window.copy())

    def test_none_feature_set(self):
        extractor = FeatureExtractor("none")
        assert extractor.extract(np.random.randn(50, 3)) == {}
        assert extractor.num_features == 0

    def test_to_array_follows_order(self):
        features = self.extractor.extract(np.random.randn(20, 3))
        array = self.extractor.to_array(features)
        assert array[0] == features["x_mean"]
        assert array[-1] == features["avg_acc_rate"]

    def test_bad_window_shape(self):
        with pytest.raises(ValueError):
            self.extractor.extract(np.zeros((10, 2)))
