"""Serialize model inputs and run them through a model engine."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np
import torch

logger = logging.getLogger(__name__)

# Native byte order float32, as the on-device interpreter expects
FLOAT32 = np.dtype('=f4')


class InferenceFailure(Exception):
    """Raised when the model engine cannot produce a usable result."""


@dataclass(frozen=True)
class ScorePair:
    """Output of a two-score (fall vs activity) model."""
    fall_score: float
    activity_score: float


@dataclass(frozen=True)
class ClassProbabilities:
    """Output of a multiclass activity model."""
    probabilities: tuple

    def __len__(self) -> int:
        return len(self.probabilities)


InferenceResult = Union[ScorePair, ClassProbabilities]


class ModelEngine:
    """Opaque model: flat float32 buffer in, flat float32 buffer out."""

    def __init__(self, input_shape: Sequence[int], output_shape: Sequence[int]):
        self.input_shape = tuple(input_shape)
        self.output_shape = tuple(output_shape)

    def run(self, input_buffer: bytes) -> bytes:
        raise NotImplementedError

    def close(self):
        pass


class CallableEngine(ModelEngine):
    """Engine backed by a function mapping an input array to an output array."""

    def __init__(self, fn: Callable[[np.ndarray], np.ndarray],
                 input_shape: Sequence[int], output_shape: Sequence[int]):
        super().__init__(input_shape, output_shape)
        self.fn = fn

    def run(self, input_buffer: bytes) -> bytes:
        inputs = np.frombuffer(input_buffer, dtype=FLOAT32).reshape(self.input_shape)
        outputs = np.asarray(self.fn(inputs), dtype=FLOAT32)
        return outputs.tobytes()


class TorchScriptEngine(ModelEngine):
    """Engine running a TorchScript model exported for deployment."""

    def __init__(self, model_path: str, input_shape: Sequence[int],
                 output_shape: Sequence[int], output_key: Optional[str] = None):
        """
        Load a TorchScript model.

        Args:
            model_path: Path to the scripted model
            input_shape: Declared input shape, e.g. (1, 200, 58)
            output_shape: Declared output shape, e.g. (1, 2)
            output_key: Key to select when the model returns a dict
        """
        super().__init__(input_shape, output_shape)
        self.model_path = model_path
        self.output_key = output_key

        self.model = torch.jit.load(model_path, map_location='cpu')
        self.model.eval()

        logger.info(f"Loaded TorchScript model from {model_path}")

    @torch.no_grad()
    def run(self, input_buffer: bytes) -> bytes:
        inputs = np.frombuffer(input_buffer, dtype=FLOAT32).reshape(self.input_shape)
        input_tensor = torch.from_numpy(inputs.astype(np.float32))

        output = self.model(input_tensor)
        if isinstance(output, dict):
            if self.output_key is None:
                raise InferenceFailure(
                    f"Model returned outputs {sorted(output)} but no output key is configured"
                )
            output = output[self.output_key]

        return output.detach().cpu().numpy().astype(FLOAT32).tobytes()


class InferenceAdapter:
    """Turn a feature matrix into an InferenceResult via a model engine."""

    def __init__(self, engine: ModelEngine, model_variant: str = "binary"):
        """
        Initialize inference adapter.

        Args:
            engine: Model engine with declared input/output shapes
            model_variant: 'binary' (score pair) or 'multiclass'
        """
        if model_variant not in ("binary", "multiclass"):
            raise ValueError(f"Unknown model variant: {model_variant}")
        if model_variant == "binary" and int(np.prod(engine.output_shape)) != 2:
            raise ValueError(
                f"Binary models must output 2 scores, engine declares {engine.output_shape}"
            )

        self.engine = engine
        self.model_variant = model_variant

    def serialize(self, matrix: np.ndarray) -> bytes:
        """
        Row-major float32 bytes of shape (1, N, D) in native byte order.

        Args:
            matrix: Feature matrix of shape (N, D)

        Returns:
            Input buffer for the engine
        """
        matrix = np.asarray(matrix)
        expected = self.engine.input_shape
        if (1,) + matrix.shape != expected:
            raise InferenceFailure(
                f"Matrix shape {matrix.shape} does not match model input {expected}"
            )
        return np.ascontiguousarray(matrix, dtype=FLOAT32).tobytes(order='C')

    def infer(self, matrix: np.ndarray) -> InferenceResult:
        """
        Run the model on one feature matrix.

        Args:
            matrix: Feature matrix of shape (N, D)

        Returns:
            ScorePair or ClassProbabilities depending on the model variant

        Raises:
            InferenceFailure: On shape mismatch or any engine error
        """
        input_buffer = self.serialize(matrix)

        try:
            output_buffer = self.engine.run(input_buffer)
        except InferenceFailure:
            raise
        except Exception as exc:
            raise InferenceFailure(f"Model engine failed: {exc}") from exc

        return self.decode(output_buffer)

    def decode(self, output_buffer: bytes) -> InferenceResult:
        """Decode the engine's output buffer into an InferenceResult."""
        expected_size = int(np.prod(self.engine.output_shape))

        if len(output_buffer) != expected_size * FLOAT32.itemsize:
            raise InferenceFailure(
                f"Model returned {len(output_buffer)} bytes, expected "
                f"{expected_size} float32 values for shape {self.engine.output_shape}"
            )

        values = np.frombuffer(output_buffer, dtype=FLOAT32).astype(np.float64)
        if not np.all(np.isfinite(values)):
            raise InferenceFailure(f"Model returned non-finite outputs: {values.tolist()}")

        if self.model_variant == "binary":
            return ScorePair(fall_score=float(values[0]), activity_score=float(values[1]))
        return ClassProbabilities(probabilities=tuple(float(v) for v in values))


def create_engine(config, fn: Optional[Callable[[np.ndarray], np.ndarray]] = None) -> ModelEngine:
    """
    Create a model engine from configuration.

    Args:
        config: PipelineConfig
        fn: Optional in-process model function, used instead of model_path

    Returns:
        Model engine with the configured shapes
    """
    if fn is not None:
        return CallableEngine(fn, config.input_shape, config.output_shape)

    if config.model_path is None:
        raise ValueError("No model_path configured")

    return TorchScriptEngine(
        config.model_path,
        input_shape=config.input_shape,
        output_shape=config.output_shape,
        output_key=config.model_output_key
    )
