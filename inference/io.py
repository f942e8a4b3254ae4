"""Sample sources and result sinks around the streaming pipeline."""

import json
import logging
from pathlib import Path
from typing import Iterator, List, Tuple, Union

import pandas as pd

from .adapter import ClassProbabilities, ScorePair
from .decision import Decision

logger = logging.getLogger(__name__)

TimedSample = Tuple[float, float, float, float]  # (timestamp_ms, x, y, z)


class SampleSource:
    """Producer of timestamped triaxial samples, in temporal order."""

    def __iter__(self) -> Iterator[TimedSample]:
        raise NotImplementedError


class CsvSampleSource(SampleSource):
    """Replay a recorded accelerometer session from CSV."""

    def __init__(self, csv_path: Union[str, Path], timestamp_column: str = "timestamp",
                 axis_columns: Tuple[str, str, str] = ("x", "y", "z")):
        """
        Initialize CSV source.

        Args:
            csv_path: Recording with a timestamp column (ms) and three axes
            timestamp_column: Name of the timestamp column
            axis_columns: Names of the x, y, z columns
        """
        self.csv_path = Path(csv_path)
        self.timestamp_column = timestamp_column
        self.axis_columns = tuple(axis_columns)

        if not self.csv_path.exists():
            raise FileNotFoundError(f"Recording not found: {self.csv_path}")

        self.frame = pd.read_csv(self.csv_path)
        missing = [c for c in (timestamp_column,) + self.axis_columns
                   if c not in self.frame.columns]
        if missing:
            raise ValueError(f"Recording {self.csv_path} lacks columns {missing}")

        logger.info(f"Loaded {len(self.frame)} samples from {self.csv_path}")

    def __len__(self) -> int:
        return len(self.frame)

    def __iter__(self) -> Iterator[TimedSample]:
        columns = [self.timestamp_column, *self.axis_columns]
        for t, x, y, z in self.frame[columns].itertuples(index=False, name=None):
            yield float(t), float(x), float(y), float(z)


class ResultSink:
    """Consumer of per-window decisions."""

    def emit(self, decision: Decision):
        raise NotImplementedError

    def close(self):
        pass


def decision_to_dict(decision: Decision) -> dict:
    record = {
        'window': decision.window_index,
        'label': decision.label,
        'alert': decision.alert,
    }
    if isinstance(decision.result, ScorePair):
        record['fall_score'] = decision.result.fall_score
        record['activity_score'] = decision.result.activity_score
    elif isinstance(decision.result, ClassProbabilities):
        record['probabilities'] = list(decision.result.probabilities)
    return record


class LoggingSink(ResultSink):
    """Log every decision; alerts are logged as warnings."""

    def emit(self, decision: Decision):
        if decision.alert:
            logger.warning(f"Fall detected in window {decision.window_index} ({decision.label})")
        else:
            logger.info(f"Window {decision.window_index}: {decision.label}")


class CollectingSink(ResultSink):
    """Keep decisions in memory."""

    def __init__(self):
        self.decisions: List[Decision] = []

    def emit(self, decision: Decision):
        self.decisions.append(decision)


class JsonlSink(ResultSink):
    """Append one JSON object per decision to a file."""

    def __init__(self, output_path: Union[str, Path]):
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, 'w')

    def emit(self, decision: Decision):
        self._file.write(json.dumps(decision_to_dict(decision)) + "\n")

    def close(self):
        if not self._file.closed:
            self._file.close()
            logger.info(f"Saved decisions to {self.output_path}")
