# predictive_loader/models/__init__.py
"""
Core models for the predictive loader.

All public names are re-exported here so callers can write
``from predictive_loader.models import Prediction``.
"""

# --- entities & predictions ----------------------------------------------------
from predictive_loader.models.entity import (  # noqa: F401
    Prediction,
    RegisteredEntity,
    clamp_unit,
)

# --- enums & constants -------------------------------------------------------
from predictive_loader.models.enums import (  # noqa: F401
    EVENT_BASE_WEIGHTS,
    UNIFORM_CONFIDENCE,
    UNKNOWN_EVENT_WEIGHT,
    EffectiveType,
    EventType,
    HintKind,
    ModelType,
    NavigationPattern,
    NetworkQuality,
    Priority,
)

# --- interactions & patterns ---------------------------------------------------
from predictive_loader.models.interaction import (  # noqa: F401
    AnalysisExport,
    EventData,
    InteractionEvent,
    NavigationPatterns,
    PatternSnapshot,
    PrimaryEntity,
    TransitionEdge,
)

# --- metrics -------------------------------------------------------------------
from predictive_loader.models.metrics import (  # noqa: F401
    ConfidenceThresholds,
    LoaderMetrics,
    MetricsReport,
    PredictionMetrics,
    QueueSizes,
)

# --- network -------------------------------------------------------------------
from predictive_loader.models.network import NetworkSnapshot  # noqa: F401

__all__ = [
    # Enums & constants
    "EVENT_BASE_WEIGHTS",
    "UNIFORM_CONFIDENCE",
    "UNKNOWN_EVENT_WEIGHT",
    "EffectiveType",
    "EventType",
    "HintKind",
    "ModelType",
    "NavigationPattern",
    "NetworkQuality",
    "Priority",
    # Interactions
    "AnalysisExport",
    "EventData",
    "InteractionEvent",
    "NavigationPatterns",
    "PatternSnapshot",
    "PrimaryEntity",
    "TransitionEdge",
    # Entities
    "Prediction",
    "RegisteredEntity",
    "clamp_unit",
    # Metrics
    "ConfidenceThresholds",
    "LoaderMetrics",
    "MetricsReport",
    "PredictionMetrics",
    "QueueSizes",
    # Network
    "NetworkSnapshot",
]
