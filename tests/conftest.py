"""Shared fixtures: small scripted models for engine tests."""

from typing import Dict

import pytest
import torch
import torch.nn as nn


class MultiTaskModel(nn.Module):
    """Tiny multi-task model returning fall and activity heads as a dict."""

    def __init__(self, activity_index: int, num_classes: int = 16):
        super().__init__()
        self.activity_index = activity_index
        self.num_classes = num_classes

    def forward(self, x: torch.Tensor) -> Dict[str, torch.Tensor]:
        activity = torch.zeros([x.size(0), self.num_classes])
        activity[:, self.activity_index] = 1.0
        fall = x[:, :, 0].mean(dim=1, keepdim=True)
        return {'fall': fall, 'activity': activity}


@pytest.fixture
def multitask_model_path(tmp_path):
    """Save a scripted MultiTaskModel predicting the given class index."""
    def _save(activity_index: int) -> str:
        path = tmp_path / f"multitask_{activity_index}.pt"
        torch.jit.save(torch.jit.script(MultiTaskModel(activity_index)), str(path))
        return str(path)
    return _save
