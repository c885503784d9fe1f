"""Enums and constants for the predictive loader."""

from enum import Enum

# =============================================================================
# Enums
# =============================================================================


class EventType(str, Enum):
    """Interaction event types with a known predictive weight."""

    NAVIGATION = "navigation"
    CLICK = "click"
    FORM_SUBMIT = "form-submit"
    HOVER = "hover"
    FOCUS = "focus"
    SCROLL_END = "scroll-end"
    VISIBILITY = "visibility"
    SCROLL = "scroll"
    POINTER_MOVE = "pointer-move"


class Priority(str, Enum):
    """Scheduling tier for a predicted entity."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class HintKind(str, Enum):
    """Resource hint issued ahead of a load."""

    PREFETCH = "prefetch"  # Fetch the resource itself
    PRECONNECT = "preconnect"  # Only warm up the connection


class ModelType(str, Enum):
    """Available prediction model implementations."""

    CONDITIONAL = "conditional"
    MARKOV = "markov"
    ATTENTION = "attention"


class EffectiveType(str, Enum):
    """Effective connection type reported by the network provider."""

    FOUR_G = "4g"
    THREE_G = "3g"
    TWO_G = "2g"
    SLOW_TWO_G = "slow-2g"
    UNKNOWN = "unknown"


class NetworkQuality(str, Enum):
    """Coarse network quality category."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    OFFLINE = "offline"


class NavigationPattern(str, Enum):
    """Dominant navigation behavior derived from the transition graph."""

    LINEAR = "linear"
    BRANCHING = "branching"
    CYCLIC = "cyclic"
    MIXED = "mixed"
    UNKNOWN = "unknown"


# =============================================================================
# Constants
# =============================================================================

# Base weight per event type. Higher = stronger signal of upcoming use.
EVENT_BASE_WEIGHTS: dict[str, float] = {
    EventType.NAVIGATION.value: 0.95,
    EventType.CLICK.value: 0.9,
    EventType.FORM_SUBMIT.value: 0.85,
    EventType.HOVER.value: 0.7,
    EventType.FOCUS.value: 0.65,
    EventType.SCROLL_END.value: 0.6,
    EventType.VISIBILITY.value: 0.5,
    EventType.SCROLL.value: 0.4,
    EventType.POINTER_MOVE.value: 0.2,
}

UNKNOWN_EVENT_WEIGHT = 0.3

# Confidence reported for uniform (no evidence) predictions
UNIFORM_CONFIDENCE = 0.1
