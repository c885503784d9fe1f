# predictive_loader/behavior/__init__.py
"""Behavior modeling: interaction recording and usage-graph statistics."""

from .recorder import InteractionRecorder, RecorderConfig, interaction_metric

__all__ = [
    "InteractionRecorder",
    "RecorderConfig",
    "interaction_metric",
]
