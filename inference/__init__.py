"""Streaming inference: model I/O, decisions and the sample pipeline."""

from .adapter import (CallableEngine, ClassProbabilities, InferenceAdapter,
                      InferenceFailure, ModelEngine, ScorePair,
                      TorchScriptEngine, create_engine)
from .config import ConfigError, NormalizationProfile, PipelineConfig, load_config
from .decision import Decision, DecisionPolicy
from .io import (CollectingSink, CsvSampleSource, JsonlSink, LoggingSink,
                 ResultSink, SampleSource)
from .streaming import PersistentInferenceFailure, PipelineState, StreamingPipeline

__all__ = ["StreamingPipeline", "PipelineState", "PersistentInferenceFailure",
           "InferenceAdapter", "InferenceFailure", "ModelEngine", "CallableEngine",
           "TorchScriptEngine", "create_engine", "ScorePair", "ClassProbabilities",
           "Decision", "DecisionPolicy", "PipelineConfig", "NormalizationProfile",
           "ConfigError", "load_config", "SampleSource", "CsvSampleSource",
           "ResultSink", "LoggingSink", "CollectingSink", "JsonlSink"]
