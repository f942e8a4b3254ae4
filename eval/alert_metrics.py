"""Metrics for replayed fall alerts and activity labels."""

from typing import List, Optional, Sequence

import numpy as np
from sklearn.metrics import (accuracy_score, confusion_matrix, f1_score,
                             precision_score, recall_score)


def compute_alert_metrics(alerts: Sequence[bool], targets: Sequence[bool],
                          window_seconds: float = 1.0) -> dict:
    """
    Compute fall alert metrics over consecutive windows.

    Args:
        alerts: Alert flag per window
        targets: Ground truth fall flag per window
        window_seconds: Duration covered by one window

    Returns:
        Dictionary of metrics
    """
    alerts = np.asarray(alerts, dtype=int)
    targets = np.asarray(targets, dtype=int)

    if len(alerts) != len(targets):
        raise ValueError(f"Got {len(alerts)} alerts for {len(targets)} targets")

    precision = precision_score(targets, alerts, zero_division=0)
    recall = recall_score(targets, alerts, zero_division=0)
    f1 = 2 * (precision * recall) / (precision + recall + 1e-8)

    cm = confusion_matrix(targets, alerts, labels=[0, 1])
    tn, fp, fn, tp = cm.ravel()

    # False alarms per hour of replayed data
    total_hours = (len(alerts) * window_seconds) / 3600
    false_alarms_per_hour = fp / total_hours if total_hours > 0 else 0.0

    return {
        'precision': float(precision),
        'recall': float(recall),
        'f1': float(f1),
        'true_positives': int(tp),
        'false_positives': int(fp),
        'true_negatives': int(tn),
        'false_negatives': int(fn),
        'false_alarm_per_hour': float(false_alarms_per_hour),
        'num_windows': int(len(alerts)),
    }


def compute_activity_metrics(predictions: Sequence[str], targets: Sequence[str],
                             class_names: Optional[List[str]] = None) -> dict:
    """
    Compute activity label metrics.

    Args:
        predictions: Predicted label per window
        targets: Ground truth label per window
        class_names: Optional label set to report per-class F1 for

    Returns:
        Dictionary of metrics
    """
    accuracy = accuracy_score(targets, predictions)
    macro_f1 = f1_score(targets, predictions, average='macro', zero_division=0)

    metrics = {
        'accuracy': float(accuracy),
        'macro_f1': float(macro_f1),
    }

    if class_names:
        per_class_f1 = f1_score(targets, predictions, labels=class_names,
                                average=None, zero_division=0)
        for class_name, score in zip(class_names, per_class_f1):
            metrics[f'f1_{class_name}'] = float(score)

    return metrics
