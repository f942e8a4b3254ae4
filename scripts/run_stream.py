#!/usr/bin/env python
"""Replay a recorded accelerometer session through the streaming pipeline."""

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np
from tqdm import tqdm

# Add parent directory to path
sys.path.append(str(Path(__file__).parent.parent))

from eval import compute_alert_metrics
from inference import (CsvSampleSource, InferenceFailure, JsonlSink,
                       StreamingPipeline, create_engine, load_config)
from preprocessing import MalformedSample

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def majority_label(labels) -> int:
    unique, counts = np.unique(np.asarray(labels, dtype=int), return_counts=True)
    return int(unique[np.argmax(counts)])


def main():
    parser = argparse.ArgumentParser(description='Replay a recording through the detector')
    parser.add_argument('--recording', type=str, required=True,
                       help='CSV with timestamp (ms), x, y, z columns')
    parser.add_argument('--config', type=str, default='configs/default.yaml',
                       help='Pipeline configuration')
    parser.add_argument('--model', type=str, default=None,
                       help='TorchScript model (overrides model_path)')
    parser.add_argument('--output', type=str, default='reports/decisions.jsonl',
                       help='Where to write per-window decisions')
    parser.add_argument('--label-column', type=str, default=None,
                       help='Optional per-sample 0/1 fall column for scoring alerts')
    parser.add_argument('overrides', nargs='*',
                       help='Config overrides, e.g. window_size=50')
    args = parser.parse_args()

    overrides = list(args.overrides)
    if args.model:
        overrides.append(f"model_path={args.model}")
    config = load_config(args.config, overrides)

    source = CsvSampleSource(args.recording)
    labels = None
    if args.label_column:
        if args.label_column not in source.frame.columns:
            parser.error(f"Column {args.label_column} not in recording")
        labels = source.frame[args.label_column].to_numpy()

    engine = create_engine(config)
    sink = JsonlSink(args.output)
    pipeline = StreamingPipeline(config, engine, sink=sink)

    logger.info("=" * 60)
    logger.info("Stream Replay")
    logger.info("=" * 60)
    logger.info(f"Recording: {args.recording}")
    logger.info(f"Input shape: {config.input_shape}, output shape: {config.output_shape}")

    alerts, targets = [], []
    pending_labels = []
    failures = 0

    try:
        for i, (timestamp_ms, x, y, z) in enumerate(tqdm(source, total=len(source), desc="Replay")):
            window_closed = True
            try:
                decision = pipeline.process_sample((x, y, z), timestamp_ms)
                window_closed = decision is not None
            except MalformedSample as exc:
                logger.warning(f"Skipping sample {i}: {exc}")
                continue
            except InferenceFailure as exc:
                failures += 1
                logger.error(f"Window dropped: {exc}")
                if pipeline.consecutive_failures >= config.max_consecutive_failures:
                    raise
                decision = None

            if labels is None:
                continue

            # A time-windowed flush is triggered by a sample that is itself dropped
            if not window_closed or config.flush_policy == "count":
                pending_labels.append(labels[i])

            if window_closed:
                if decision is not None and pending_labels:
                    alerts.append(decision.alert)
                    targets.append(majority_label(pending_labels))
                pending_labels = []
    finally:
        sink.close()
        engine.close()

    logger.info(f"Decided {pipeline.windows_processed - failures} windows, {failures} failed")

    if labels is not None and alerts:
        if config.flush_policy == "time":
            window_seconds = config.window_duration_ms / 1000.0
        else:
            timestamps = source.frame[source.timestamp_column].to_numpy(dtype=float)
            span_s = (timestamps[-1] - timestamps[0]) / 1000.0 if len(timestamps) > 1 else 0.0
            window_seconds = span_s / max(pipeline.windows_processed, 1)

        metrics = compute_alert_metrics(alerts, targets, window_seconds=window_seconds)
        metrics_path = Path(args.output).with_suffix('.metrics.json')
        with open(metrics_path, 'w') as f:
            json.dump(metrics, f, indent=2)

        logger.info(f"Precision: {metrics['precision']:.4f}")
        logger.info(f"Recall: {metrics['recall']:.4f}")
        logger.info(f"False alarms/hour: {metrics['false_alarm_per_hour']:.2f}")
        logger.info(f"Saved metrics to {metrics_path}")


if __name__ == '__main__':
    main()
