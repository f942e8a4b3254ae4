"""Real-time streaming inference for deployment."""

import logging
from enum import Enum
from typing import Iterable, Optional, Sequence

from preprocessing import (FeatureExtractor, FeatureMatrixBuilder, MalformedSample,
                           Normalizer, WindowAccumulator)

from .adapter import InferenceAdapter, InferenceFailure, ModelEngine
from .config import PipelineConfig
from .decision import Decision, DecisionPolicy
from .io import ResultSink, TimedSample

logger = logging.getLogger(__name__)


class PersistentInferenceFailure(InferenceFailure):
    """Raised when the model keeps failing on consecutive windows."""


class PipelineState(Enum):
    COLLECTING = "collecting"
    WINDOW_READY = "window_ready"
    NORMALIZED = "normalized"
    FEATURE_EXTRACTED = "feature_extracted"
    MATRIX_BUILT = "matrix_built"
    INFERRED = "inferred"
    DECIDED = "decided"


class StreamingPipeline:
    """
    Window, featurize, infer and decide on a live sample stream.

    Samples are pushed one at a time from a single producer. When a window
    completes, every stage runs synchronously before the call returns, so at
    most one window is in flight.
    """

    def __init__(self, config: PipelineConfig, engine: ModelEngine,
                 sink: Optional[ResultSink] = None):
        """
        Initialize streaming pipeline.

        Args:
            config: Pipeline configuration
            engine: Model engine with shapes matching config.input_shape
                and config.output_shape
            sink: Optional consumer of decisions
        """
        if engine.input_shape != config.input_shape:
            raise ValueError(
                f"Engine input shape {engine.input_shape} does not match "
                f"configured {config.input_shape}"
            )

        self.config = config
        self.sink = sink

        self.accumulator = WindowAccumulator(
            window_size=config.window_size,
            flush_policy=config.flush_policy,
            window_duration_ms=config.window_duration_ms
        )
        self.normalizer = Normalizer.from_profile(config.normalization)
        self.extractor = FeatureExtractor(config.feature_set)
        self.builder = FeatureMatrixBuilder(
            window_size=config.window_size,
            feature_names=self.extractor.feature_names,
            raw_channels=config.raw_channels
        )
        self.adapter = InferenceAdapter(engine, config.model_variant)
        self.policy = DecisionPolicy.from_config(config)

        self.state = PipelineState.COLLECTING
        self.windows_processed = 0
        self.consecutive_failures = 0

    def process_sample(self, sample: Sequence[float],
                       timestamp_ms: Optional[float] = None) -> Optional[Decision]:
        """
        Process a single sensor sample.

        Args:
            sample: Raw (x, y, z) reading
            timestamp_ms: Arrival time, required by the 'time' flush policy

        Returns:
            Decision when the sample completed a window, otherwise None

        Raises:
            MalformedSample: The reading was rejected and not buffered
            InferenceFailure: The window was dropped; the pipeline is back
                to collecting and accepts the next sample
        """
        window = self.accumulator.push(sample, timestamp_ms)
        if window is None:
            return None

        self.state = PipelineState.WINDOW_READY
        window_index = self.windows_processed
        self.windows_processed += 1

        try:
            decision = self._process_window(window, window_index)
        except InferenceFailure:
            self.consecutive_failures += 1
            raise
        finally:
            self.state = PipelineState.COLLECTING

        self.consecutive_failures = 0
        if self.sink is not None:
            self.sink.emit(decision)
        return decision

    def _process_window(self, window, window_index: int) -> Decision:
        normalized = self.normalizer.normalize_window(window)
        self.state = PipelineState.NORMALIZED

        features = self.extractor.extract(normalized)
        self.state = PipelineState.FEATURE_EXTRACTED

        matrix = self.builder.build(normalized, features)
        self.state = PipelineState.MATRIX_BUILT

        result = self.adapter.infer(matrix)
        self.state = PipelineState.INFERRED

        decision = self.policy.decide(result, window_index=window_index)
        self.state = PipelineState.DECIDED

        logger.debug(f"Window {window_index}: label={decision.label}, alert={decision.alert}")
        return decision

    def run(self, source: Iterable[TimedSample]) -> int:
        """
        Drive the pipeline from a sample source until it is exhausted.

        Malformed samples and failed windows are logged and skipped. A model that fails on
        max_consecutive_failures windows in a row is treated as broken.

        Args:
            source: Iterable of (timestamp_ms, x, y, z)

        Returns:
            Number of windows decided
        """
        decided = 0

        for timestamp_ms, x, y, z in source:
            try:
                decision = self.process_sample((x, y, z), timestamp_ms)
            except MalformedSample as exc:
                logger.warning(f"Skipping sample at {timestamp_ms}: {exc}")
                continue
            except InferenceFailure as exc:
                logger.error(
                    f"Inference failed on window {self.windows_processed - 1} "
                    f"({self.consecutive_failures} in a row): {exc}"
                )
                if self.consecutive_failures >= self.config.max_consecutive_failures:
                    raise PersistentInferenceFailure(
                        f"Model failed on {self.consecutive_failures} consecutive windows"
                    ) from exc
                continue

            if decision is not None:
                decided += 1

        logger.info(f"Stream ended after {self.windows_processed} windows ({decided} decided)")
        return decided

    def reset(self):
        """Drop any partially collected window."""
        self.accumulator.reset()
        self.state = PipelineState.COLLECTING
