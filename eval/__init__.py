"""Evaluation utilities for replayed detection runs."""

from .alert_metrics import compute_activity_metrics, compute_alert_metrics

__all__ = ["compute_alert_metrics", "compute_activity_metrics"]
