# predictive_loader/prediction/__init__.py
"""
Prediction layer: three interchangeable models and the coordinator.

- ConditionalProbabilityModel: P(next | current) from EMA co-occurrence counts
- MarkovChainModel: bounded-order chain with back-off
- AttentionSequenceModel: multi-head attention over the recent sequence
"""

from predictive_loader.prediction.attention import AttentionModelConfig, AttentionSequenceModel
from predictive_loader.prediction.base import (
    TOP_K_HIT,
    PredictionModel,
    priority_from_probability,
)
from predictive_loader.prediction.conditional import ConditionalModelConfig, ConditionalProbabilityModel
from predictive_loader.prediction.coordinator import (
    CoordinatorConfig,
    PredictionCoordinator,
    ThresholdPolicy,
    create_model,
    load_model,
)
from predictive_loader.prediction.markov import MarkovChainModel, MarkovModelConfig

__all__ = [
    # Protocol & helpers
    "PredictionModel",
    "TOP_K_HIT",
    "priority_from_probability",
    # Models
    "AttentionModelConfig",
    "AttentionSequenceModel",
    "ConditionalModelConfig",
    "ConditionalProbabilityModel",
    "MarkovChainModel",
    "MarkovModelConfig",
    # Coordinator
    "CoordinatorConfig",
    "PredictionCoordinator",
    "ThresholdPolicy",
    "create_model",
    "load_model",
]
