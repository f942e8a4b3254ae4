"""Map model outputs to activity labels and fall alerts."""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .adapter import ClassProbabilities, InferenceFailure, InferenceResult, ScorePair


@dataclass(frozen=True)
class Decision:
    """Per-window outcome handed to the result sink."""
    label: Optional[str]
    alert: bool
    result: Optional[InferenceResult] = None
    window_index: int = -1


class DecisionPolicy:
    """Stateless decision rule for binary-score or multiclass models."""

    def __init__(self, model_variant: str = "binary",
                 class_labels: Sequence[str] = (),
                 fall_labels: Sequence[str] = (),
                 score_labels: Sequence[str] = ("fall", "adl")):
        """
        Initialize decision policy.

        Args:
            model_variant: 'binary' or 'multiclass'
            class_labels: Label of each multiclass output, in output order
            fall_labels: Labels that raise an alert (multiclass)
            score_labels: Labels reported for (fall, activity) winners (binary)
        """
        if model_variant not in ("binary", "multiclass"):
            raise ValueError(f"Unknown model variant: {model_variant}")

        self.model_variant = model_variant
        self.class_labels = tuple(class_labels)
        self.fall_labels = frozenset(fall_labels)
        self.score_labels = tuple(score_labels)

    @classmethod
    def from_config(cls, config) -> 'DecisionPolicy':
        return cls(
            model_variant=config.model_variant,
            class_labels=config.class_labels,
            fall_labels=config.fall_labels,
            score_labels=config.score_labels
        )

    def decide(self, result: InferenceResult, window_index: int = -1) -> Decision:
        """
        Decide label and alert for one inference result.

        Args:
            result: ScorePair or ClassProbabilities
            window_index: Sequence number of the window, for reporting

        Returns:
            Decision
        """
        if self.model_variant == "binary":
            if not isinstance(result, ScorePair):
                raise InferenceFailure(f"Binary policy expects a ScorePair, got {type(result).__name__}")
            alert = result.fall_score > result.activity_score
            label = self.score_labels[0] if alert else self.score_labels[1]
            return Decision(label=label, alert=alert, result=result, window_index=window_index)

        if not isinstance(result, ClassProbabilities):
            raise InferenceFailure(
                f"Multiclass policy expects ClassProbabilities, got {type(result).__name__}"
            )
        if len(result) != len(self.class_labels):
            raise InferenceFailure(
                f"Model returned {len(result)} classes, {len(self.class_labels)} labels configured"
            )

        # np.argmax returns the first maximum, so ties go to the lowest index
        label = self.class_labels[int(np.argmax(result.probabilities))]
        return Decision(label=label, alert=label in self.fall_labels,
                        result=result, window_index=window_index)
