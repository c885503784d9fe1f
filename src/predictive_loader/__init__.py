# predictive_loader/__init__.py
"""
Predictive entity preloader.

Predicts which entities (application modules, resources) a user will need
next from a live stream of interaction events and preloads them under a
network-aware concurrency budget:

- behavior: interaction recording and the weighted usage graph
- prediction: conditional, Markov and attention models plus the coordinator
- loading: priority queues, concurrency budget and asynchronous loads
- analysis: offline evaluation and significance testing
"""

from predictive_loader.behavior import InteractionRecorder, RecorderConfig
from predictive_loader.engine import EngineConfig, PredictiveLoader
from predictive_loader.exceptions import (
    InvalidModelStateError,
    PredictiveLoaderError,
    SchedulerNotRunningError,
    UnknownModelTypeError,
)
from predictive_loader.loading import (
    LoadScheduler,
    NetworkPoller,
    ResourceFetcher,
    SchedulerConfig,
    SimulatedFetcher,
)
from predictive_loader.models import (
    EventType,
    HintKind,
    MetricsReport,
    ModelType,
    NetworkSnapshot,
    PatternSnapshot,
    Prediction,
    Priority,
    RegisteredEntity,
)
from predictive_loader.prediction import (
    AttentionSequenceModel,
    ConditionalProbabilityModel,
    CoordinatorConfig,
    MarkovChainModel,
    PredictionCoordinator,
    PredictionModel,
    create_model,
)

__version__ = "0.3.0"

__all__ = [
    # Engine
    "EngineConfig",
    "PredictiveLoader",
    # Behavior
    "InteractionRecorder",
    "RecorderConfig",
    # Prediction
    "AttentionSequenceModel",
    "ConditionalProbabilityModel",
    "CoordinatorConfig",
    "MarkovChainModel",
    "PredictionCoordinator",
    "PredictionModel",
    "create_model",
    # Loading
    "LoadScheduler",
    "NetworkPoller",
    "ResourceFetcher",
    "SchedulerConfig",
    "SimulatedFetcher",
    # Models
    "EventType",
    "HintKind",
    "MetricsReport",
    "ModelType",
    "NetworkSnapshot",
    "PatternSnapshot",
    "Prediction",
    "Priority",
    "RegisteredEntity",
    # Exceptions
    "InvalidModelStateError",
    "PredictiveLoaderError",
    "SchedulerNotRunningError",
    "UnknownModelTypeError",
]
