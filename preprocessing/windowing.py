"""Window accumulation for streaming accelerometer samples."""

import logging
from typing import List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

FLUSH_POLICIES = ("count", "time")


class MalformedSample(ValueError):
    """Raised for a reading that is not three numeric components."""


def subsample(samples: np.ndarray, window_size: int) -> np.ndarray:
    """
    Reduce (or stretch) a buffer to exactly window_size samples.

    Picks every floor(n / window_size)-th sample starting at index 0 and
    keeps the first window_size picks. Buffers shorter than window_size are
    padded by repeating their last sample.

    Args:
        samples: Buffered samples of shape (n_samples, n_channels), n >= 1
        window_size: Target number of samples

    Returns:
        Array of shape (window_size, n_channels)
    """
    if len(samples) == 0:
        raise ValueError("Cannot subsample an empty buffer")

    stride = max(1, len(samples) // window_size)
    picked = samples[::stride][:window_size]

    if len(picked) < window_size:
        pad = window_size - len(picked)
        picked = np.pad(picked, ((0, pad), (0, 0)), mode='edge')

    return picked


class WindowAccumulator:
    """Fixed-capacity buffer of raw triaxial samples with a flush policy."""

    def __init__(self, window_size: int, flush_policy: str = "count",
                 window_duration_ms: float = 1000.0):
        """
        Initialize window accumulator.

        Args:
            window_size: Number of samples N in every emitted window
            flush_policy: 'count' (flush at N samples) or 'time'
                (flush once window_duration_ms has elapsed, then subsample)
            window_duration_ms: Collection period for the 'time' policy
        """
        if window_size < 1:
            raise ValueError(f"window_size must be positive, got {window_size}")
        if flush_policy not in FLUSH_POLICIES:
            raise ValueError(f"Unknown flush policy: {flush_policy}")
        if window_duration_ms <= 0:
            raise ValueError(f"window_duration_ms must be positive, got {window_duration_ms}")

        self.window_size = window_size
        self.flush_policy = flush_policy
        self.window_duration_ms = window_duration_ms

        self._buffer: List[Sequence[float]] = []
        self._start_ms: Optional[float] = None

        logger.info(
            f"Window accumulator initialized: size={window_size} samples, "
            f"policy={flush_policy}"
            + (f" ({window_duration_ms:.0f} ms)" if flush_policy == "time" else "")
        )

    def __len__(self) -> int:
        return len(self._buffer)

    def reset(self):
        """Drop buffered samples and restart collection."""
        self._buffer = []
        self._start_ms = None

    def push(self, sample: Sequence[float],
             timestamp_ms: Optional[float] = None) -> Optional[np.ndarray]:
        """
        Append a sample, returning a completed window if one is ready.

        Args:
            sample: Raw (x, y, z) reading
            timestamp_ms: Arrival time in milliseconds (required for 'time')

        Returns:
            Read-only window of shape (window_size, 3), or None while
            still accumulating

        Raises:
            MalformedSample: The reading was rejected; the buffer is unchanged
        """
        values = self._validate(sample)

        if self.flush_policy == "count":
            self._buffer.append(values)
            if len(self._buffer) >= self.window_size:
                return self._flush(self._buffer)
            return None

        if timestamp_ms is None:
            raise ValueError("Time-windowed accumulation requires timestamps")

        if self._start_ms is None:
            self._start_ms = timestamp_ms

        if timestamp_ms - self._start_ms < self.window_duration_ms:
            self._buffer.append(values)
            return None

        # The sample that closes the period is dropped; the next push
        # restarts the timer
        collected = self._buffer
        if not collected:
            self.reset()
            return None

        logger.debug(
            f"Time window closed with {len(collected)} samples, "
            f"subsampled to {self.window_size}"
        )
        return self._flush(collected)

    @staticmethod
    def _validate(sample: Sequence[float]) -> tuple:
        try:
            values = tuple(float(v) for v in sample)
        except (TypeError, ValueError) as exc:
            raise MalformedSample(f"Non-numeric sample: {sample!r}") from exc
        if len(values) != 3:
            raise MalformedSample(f"Expected 3 components, got {len(values)}")
        return values

    def _flush(self, collected: List[Sequence[float]]) -> np.ndarray:
        """Hand off the buffer as an independent window and start over."""
        try:
            samples = np.asarray(collected, dtype=np.float64)
        finally:
            self.reset()

        if len(samples) != self.window_size:
            samples = subsample(samples, self.window_size)

        samples.setflags(write=False)
        return samples
