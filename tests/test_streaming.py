"""Tests for the end-to-end streaming pipeline and its configuration."""

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from eval import compute_alert_metrics
from inference import (CallableEngine, CollectingSink, ConfigError,
                       CsvSampleSource, InferenceFailure, JsonlSink,
                       PersistentInferenceFailure, PipelineConfig,
                       PipelineState, StreamingPipeline, create_engine,
                       load_config)
from inference.config import ACTIVITY_CLASSES

CONFIG_DIR = Path(__file__).parent.parent / "configs"


def fall_when_x_large(matrix: np.ndarray) -> np.ndarray:
    """Stand-in model: flags a fall when mean |x| exceeds 1."""
    fall = float(matrix[0, :, 0].mean())
    return np.array([[fall, 1.0]])


def make_pipeline(config=None, fn=fall_when_x_large, sink=None):
    config = config or PipelineConfig()
    engine = CallableEngine(fn, config.input_shape, config.output_shape)
    return StreamingPipeline(config, engine, sink=sink or CollectingSink())


class TestConfig:
    """Test configuration loading and validation."""

    def test_defaults(self):
        config = PipelineConfig()
        assert config.input_shape == (1, 200, 58)
        assert config.output_shape == (1, 2)

    def test_presets(self):
        lstm = load_config(CONFIG_DIR / "lstm_50.yaml")
        assert lstm.input_shape == (1, 50, 3)
        assert lstm.flush_policy == "time"
        assert lstm.raw_channels == "signed"

        multiclass = load_config(CONFIG_DIR / "multiclass_16.yaml")
        assert multiclass.output_shape == (1, 16)
        assert multiclass.input_dim == 58

        default = load_config(CONFIG_DIR / "default.yaml")
        assert default.normalization.means[1] == pytest.approx(-0.60819228)

    def test_overrides(self):
        config = load_config(CONFIG_DIR / "default.yaml", ["window_size=50"])
        assert config.input_shape == (1, 50, 58)

    def test_feature_dim_mismatch(self):
        with pytest.raises(ConfigError):
            PipelineConfig(feature_set="none", feature_dim=58)

    def test_unknown_fall_label(self):
        with pytest.raises(ConfigError):
            PipelineConfig(model_variant="multiclass", fall_labels=["tripping"])

    def test_bad_profile(self):
        with pytest.raises(ConfigError):
            load_config(overrides=["normalization.stds=[1.0,0.0,1.0]"])


class TestStreamingPipeline:
    """Test the sample-to-decision cycle."""

    def test_one_decision_per_window(self):
        sink = CollectingSink()
        pipeline = make_pipeline(sink=sink)

        decisions = [pipeline.process_sample(s) for s in np.random.randn(450, 3)]
        emitted = [d for d in decisions if d is not None]

        assert len(emitted) == 2
        assert [d.window_index for d in sink.decisions] == [0, 1]
        assert len(pipeline.accumulator) == 50
        assert pipeline.state == PipelineState.COLLECTING

    def test_alert_on_large_motion(self):
        pipeline = make_pipeline()
        config = pipeline.config
        means = np.array(config.normalization.means)
        stds = np.array(config.normalization.stds)

        # Normalized x of +-3 around the mean, so mean |x| = 3
        raw = np.tile(means, (200, 1))
        raw[::2, 0] += 3 * stds[0]
        raw[1::2, 0] -= 3 * stds[0]

        decision = None
        for sample in raw:
            decision = pipeline.process_sample(sample) or decision

        assert decision.alert
        assert decision.label == "fall"
        assert decision.result.fall_score == pytest.approx(3.0, rel=1e-5)

    def test_quiet_window_is_not_alert(self):
        pipeline = make_pipeline()
        means = pipeline.config.normalization.means

        decision = None
        for _ in range(200):
            decision = pipeline.process_sample(means) or decision

        assert not decision.alert
        assert decision.label == "adl"

    def test_failure_resets_to_collecting(self):
        calls = []

        def flaky(matrix):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("interpreter crashed")
            return np.array([[0.0, 1.0]])

        config = PipelineConfig(window_size=10, feature_set="none")
        pipeline = make_pipeline(config, fn=flaky)

        for sample in np.zeros((9, 3)):
            pipeline.process_sample(sample)
        with pytest.raises(InferenceFailure):
            pipeline.process_sample([0, 0, 0])

        assert len(pipeline.accumulator) == 0
        assert pipeline.state == PipelineState.COLLECTING
        assert pipeline.consecutive_failures == 1

        for sample in np.zeros((9, 3)):
            assert pipeline.process_sample(sample) is None
        assert pipeline.process_sample([0, 0, 0]) is not None
        assert pipeline.consecutive_failures == 0

    def test_run_escalates_persistent_failure(self):
        def broken(matrix):
            raise RuntimeError("corrupt model")

        config = PipelineConfig(window_size=5, feature_set="none",
                                max_consecutive_failures=3)
        pipeline = make_pipeline(config, fn=broken)
        source = ((i * 10.0, 0.0, 0.0, 0.0) for i in range(100))

        with pytest.raises(PersistentInferenceFailure):
            pipeline.run(source)
        assert pipeline.windows_processed == 3

    def test_run_time_windowed(self):
        config = load_config(CONFIG_DIR / "lstm_50.yaml")
        pipeline = make_pipeline(config, fn=lambda m: np.array([[0.1, 0.9]]))

        # 3.5 seconds at 100 Hz
        source = [(i * 10.0, 0.0, -0.6, 0.0) for i in range(350)]
        decided = pipeline.run(source)

        assert decided == 3
        assert len(pipeline.sink.decisions) == 3

    def test_run_skips_malformed_samples(self):
        config = PipelineConfig(window_size=5, feature_set="none")
        pipeline = make_pipeline(config)
        source = [(i * 10.0, 0.0, 0.0, 0.0) for i in range(10)]
        source.insert(3, (30.0, None, 0.0, 0.0))

        assert pipeline.run(source) == 2
        assert len(pipeline.accumulator) == 0

    def test_engine_shape_must_match_config(self):
        config = PipelineConfig()
        engine = CallableEngine(fall_when_x_large, (1, 50, 3), (1, 2))
        with pytest.raises(ValueError):
            StreamingPipeline(config, engine)


class TestMulticlassPipeline:
    """Test the 16-class preset end to end with a scripted dict-output model."""

    def run_window(self, model_path):
        config = load_config(CONFIG_DIR / "multiclass_16.yaml")
        config.model_path = model_path
        pipeline = StreamingPipeline(config, create_engine(config), sink=CollectingSink())

        decision = None
        for sample in np.random.randn(200, 3):
            decision = pipeline.process_sample(sample) or decision
        return decision

    def test_fall_class_raises_alert(self, multitask_model_path):
        decision = self.run_window(multitask_model_path(ACTIVITY_CLASSES.index('fall_lateral')))

        assert decision.label == 'fall_lateral'
        assert decision.alert

    def test_activity_class_does_not_alert(self, multitask_model_path):
        decision = self.run_window(multitask_model_path(ACTIVITY_CLASSES.index('walking')))

        assert decision.label == 'walking'
        assert not decision.alert


class TestIO:
    """Test sample sources and sinks."""

    def test_csv_replay_to_jsonl(self, tmp_path):
        recording = tmp_path / "session.csv"
        pd.DataFrame({
            'timestamp': np.arange(400) * 20.0,
            'x': np.random.randn(400),
            'y': np.random.randn(400),
            'z': np.random.randn(400),
        }).to_csv(recording, index=False)

        output = tmp_path / "out" / "decisions.jsonl"
        sink = JsonlSink(output)
        pipeline = make_pipeline(sink=sink)

        source = CsvSampleSource(recording)
        assert len(source) == 400
        pipeline.run(source)
        sink.close()

        records = [json.loads(line) for line in output.read_text().splitlines()]
        assert len(records) == 2
        assert set(records[0]) == {'window', 'label', 'alert', 'fall_score', 'activity_score'}

    def test_csv_missing_columns(self, tmp_path):
        recording = tmp_path / "bad.csv"
        pd.DataFrame({'t': [0.0], 'x': [0.0]}).to_csv(recording, index=False)
        with pytest.raises(ValueError):
            CsvSampleSource(recording)


class TestAlertMetrics:
    """Test replay scoring."""

    def test_alert_metrics(self):
        alerts = [True, False, True, False]
        targets = [True, False, False, False]

        metrics = compute_alert_metrics(alerts, targets, window_seconds=900.0)

        assert metrics['precision'] == pytest.approx(0.5)
        assert metrics['recall'] == pytest.approx(1.0)
        assert metrics['false_positives'] == 1
        assert metrics['false_alarm_per_hour'] == pytest.approx(1.0)
