"""Interaction events, transition edges and pattern snapshots."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from predictive_loader.models.enums import NavigationPattern


class InteractionEvent(BaseModel):
    """A recorded interaction with an entity. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    event_type: str
    timestamp: float = Field(..., description="Epoch seconds when the event was recorded")
    duration_ms: float | None = Field(default=None, ge=0.0)
    viewport_coverage: float | None = Field(default=None, ge=0.0, le=1.0)
    recency_ms: float | None = Field(default=None, ge=0.0)

    # Derived at record time
    base_weight: float = Field(default=0.0)
    metric: float = Field(default=0.0, description="Weighted interaction metric")
    session_time: float = Field(default=0.0, description="Seconds since session start")


class EventData(BaseModel):
    """Raw event payload accepted by ``InteractionRecorder.record``."""

    type: str = Field(default="unknown")
    timestamp: float | None = None
    duration: float | None = Field(default=None, ge=0.0, description="Milliseconds")
    viewport_coverage: float | None = Field(default=None, ge=0.0, le=1.0)
    recency: float | None = Field(default=None, ge=0.0, description="Milliseconds")


class TransitionEdge(BaseModel):
    """Weighted directed edge source -> target in the usage graph."""

    source: str
    target: str
    weight: float = Field(default=0.0, ge=0.0)


class PrimaryEntity(BaseModel):
    """Entity ranked by cumulative interaction metric."""

    entity_id: str
    importance: float


class PatternSnapshot(BaseModel):
    """Current behavior patterns handed to the prediction layer."""

    recent_interactions: list[InteractionEvent] = Field(default_factory=list, description="Newest first")
    transition_edges: list[TransitionEdge] = Field(default_factory=list)
    interaction_density: float = Field(default=0.0, description="Events per minute")
    primary_entities: list[PrimaryEntity] = Field(default_factory=list)

    def context_sequence(self, limit: int | None = None) -> list[str]:
        """
        Chronological entity ids from the recent interactions.

        Consecutive duplicates are collapsed so repeated events on the
        same entity count once. ``limit`` keeps the newest ids.
        """
        sequence: list[str] = []
        for event in reversed(self.recent_interactions):
            if not sequence or sequence[-1] != event.entity_id:
                sequence.append(event.entity_id)
        if limit is not None:
            sequence = sequence[-limit:] if limit > 0 else []
        return sequence

    def primary_importance(self) -> dict[str, float]:
        return {p.entity_id: p.importance for p in self.primary_entities}


class NavigationPatterns(BaseModel):
    """Scores for each navigation shape plus the dominant one."""

    linear: float = 0.0
    branching: float = 0.0
    cyclic: float = 0.0
    dominant: NavigationPattern = NavigationPattern.UNKNOWN


class AnalysisExport(BaseModel):
    """Session summary exported by the recorder."""

    session_id: str
    session_duration: float
    interaction_count: int
    interaction_density: float
    pattern_complexity: float
    navigation_patterns: NavigationPatterns
    transition_edges: list[TransitionEdge]
    primary_entities: list[PrimaryEntity]
