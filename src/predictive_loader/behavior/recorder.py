# predictive_loader/behavior/recorder.py
"""
Interaction Recorder.

Turns raw interaction events into:
1. A rolling window of weighted events (30 minute retention)
2. A weighted directed graph of entity -> entity transitions
3. Summary statistics (density, primary entities, complexity, navigation shape)

The recorder is the only writer of the transition graph. Edges are
EMA-updated and never deleted except on reset().
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

from predictive_loader.models import (
    EVENT_BASE_WEIGHTS,
    UNKNOWN_EVENT_WEIGHT,
    AnalysisExport,
    EventData,
    InteractionEvent,
    NavigationPattern,
    NavigationPatterns,
    PatternSnapshot,
    PrimaryEntity,
    TransitionEdge,
)

logger = logging.getLogger(__name__)


class RecorderConfig(BaseModel):
    """Configuration for the interaction recorder."""

    retention_seconds: float = Field(default=30 * 60, gt=0, description="Rolling window length")
    graph_lookback: int = Field(default=5, ge=2, description="Events scanned for the previous entity")
    edge_decay: float = Field(default=0.7, ge=0.0, le=1.0, description="Weight kept from the old edge value")
    recent_count: int = Field(default=10, ge=1)
    primary_count: int = Field(default=5, ge=1)
    event_weights: dict[str, float] = Field(default_factory=lambda: dict(EVENT_BASE_WEIGHTS))
    unknown_event_weight: float = Field(default=UNKNOWN_EVENT_WEIGHT, ge=0.0)


def interaction_metric(
    base_weight: float,
    duration_ms: float | None = None,
    viewport_coverage: float | None = None,
    recency_ms: float | None = None,
) -> float:
    """
    Weighted interaction metric for a single event.

    metric = base * (1 + duration_factor * 0.5) * (1 + coverage * 0.3) * recency_factor

    Each factor only applies when its field is present and non-zero.
    """
    metric = base_weight

    if duration_ms:
        duration_factor = min(duration_ms / 1000, 10) / 10
        metric *= 1 + duration_factor * 0.5

    if viewport_coverage:
        metric *= 1 + viewport_coverage * 0.3

    if recency_ms:
        recency_factor = 1 - min(recency_ms / 60000, 5) / 5
        metric *= recency_factor

    return metric


class InteractionRecorder(BaseModel):
    """
    Ingests interaction events and maintains the usage graph.

    Usage::

        recorder = InteractionRecorder()
        recorder.record("cart", {"type": "click", "duration": 1200})
        patterns = recorder.get_current_patterns()
    """

    config: RecorderConfig = Field(default_factory=RecorderConfig)
    clock: Callable[[], float] = Field(default=time.time, exclude=True)

    model_config = {"arbitrary_types_allowed": True}

    # Rolling window, oldest first
    _history: list[InteractionEvent] = PrivateAttr(default_factory=list)

    # source -> {target -> weight}
    _graph: dict[str, dict[str, float]] = PrivateAttr(default_factory=dict)

    _session_start: float = PrivateAttr(default=0.0)
    _last_transition: TransitionEdge | None = PrivateAttr(default=None)

    def model_post_init(self, __context: Any) -> None:
        self._session_start = self.clock()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[InteractionEvent]:
        return list(self._history)

    @property
    def last_transition(self) -> TransitionEdge | None:
        """Edge updated by the most recent record() call, if any."""
        return self._last_transition

    @property
    def session_start(self) -> float:
        return self._session_start

    def __len__(self) -> int:
        return len(self._history)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def base_weight(self, event_type: str) -> float:
        return self.config.event_weights.get(event_type, self.config.unknown_event_weight)

    def record(self, entity_id: str, event_data: EventData | dict[str, Any] | None = None) -> InteractionEvent:
        """Record an interaction with an entity and update the usage graph."""
        data = event_data if isinstance(event_data, EventData) else EventData.model_validate(event_data or {})

        now = self.clock()
        timestamp = data.timestamp if data.timestamp is not None else now
        base = self.base_weight(data.type)

        event = InteractionEvent(
            entity_id=entity_id,
            event_type=data.type,
            timestamp=timestamp,
            duration_ms=data.duration,
            viewport_coverage=data.viewport_coverage,
            recency_ms=data.recency,
            base_weight=base,
            metric=interaction_metric(base, data.duration, data.viewport_coverage, data.recency),
            session_time=timestamp - self._session_start,
        )

        self._history.append(event)
        self._update_graph(event)
        self._prune(now)

        return event

    def _update_graph(self, event: InteractionEvent) -> None:
        entity_id = event.entity_id
        self._graph.setdefault(entity_id, {})
        self._last_transition = None

        recent = self.get_recent_interactions(self.config.graph_lookback)
        if len(recent) < 2:
            return

        previous = next((e for e in recent if e.entity_id != entity_id), None)
        if previous is None:
            return

        edges = self._graph.setdefault(previous.entity_id, {})
        decay = self.config.edge_decay
        weight = edges.get(entity_id, 0.0) * decay + event.metric * (1 - decay)
        edges[entity_id] = weight

        self._last_transition = TransitionEdge(source=previous.entity_id, target=entity_id, weight=weight)
        logger.debug("Edge %s -> %s weight=%.4f", previous.entity_id, entity_id, weight)

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.retention_seconds
        before = len(self._history)
        self._history = [e for e in self._history if e.timestamp > cutoff]
        pruned = before - len(self._history)
        if pruned:
            logger.debug("Pruned %d interactions older than %.0fs", pruned, self.config.retention_seconds)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_recent_interactions(self, count: int) -> list[InteractionEvent]:
        """Last ``count`` events, newest first."""
        if count <= 0:
            return []
        # Reverse first so events sharing a timestamp keep newest-first order
        recent = self._history[-count:][::-1]
        return sorted(recent, key=lambda e: e.timestamp, reverse=True)

    def transition_edges(self) -> list[TransitionEdge]:
        """Flatten the graph into edges."""
        return [
            TransitionEdge(source=source, target=target, weight=weight)
            for source, targets in self._graph.items()
            for target, weight in targets.items()
        ]

    def edge_weight(self, source: str, target: str) -> float:
        return self._graph.get(source, {}).get(target, 0.0)

    def interaction_density(self) -> float:
        """Interactions per minute over the session."""
        session_minutes = (self.clock() - self._session_start) / 60
        return len(self._history) / max(session_minutes, 0.1)

    def identify_primary_entities(self, count: int | None = None) -> list[PrimaryEntity]:
        """Top entities by cumulative interaction metric."""
        if count is None:
            count = self.config.primary_count
        totals: dict[str, float] = {}
        for event in self._history:
            totals[event.entity_id] = totals.get(event.entity_id, 0.0) + event.metric

        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return [PrimaryEntity(entity_id=eid, importance=metric) for eid, metric in ranked[:count]]

    def get_current_patterns(self) -> PatternSnapshot:
        return PatternSnapshot(
            recent_interactions=self.get_recent_interactions(self.config.recent_count),
            transition_edges=self.transition_edges(),
            interaction_density=self.interaction_density(),
            primary_entities=self.identify_primary_entities(),
        )

    # ------------------------------------------------------------------
    # Pattern analysis
    # ------------------------------------------------------------------

    def pattern_complexity(self) -> float:
        """
        Complexity score in [0, 1].

        0.4 * entity variety + 0.3 * event-type variety + 0.3 * graph density
        """
        unique_entities = len({e.entity_id for e in self._history})
        unique_event_types = len({e.event_type for e in self._history})

        node_count = len(self._graph)
        edge_count = sum(len(targets) for targets in self._graph.values())
        max_edges = node_count * (node_count - 1)
        graph_density = edge_count / max_edges if max_edges > 0 else 0.0

        entity_variety = min(unique_entities / 10, 1.0)
        event_variety = min(unique_event_types / max(len(self.config.event_weights), 1), 1.0)

        return entity_variety * 0.4 + event_variety * 0.3 + graph_density * 0.3

    def detect_navigation_patterns(self) -> NavigationPatterns:
        """Classify navigation as linear, branching or cyclic."""
        patterns = NavigationPatterns()

        if len(self._graph) <= 3:
            return patterns

        out_degrees = [len(targets) for targets in self._graph.values()]
        mean = sum(out_degrees) / len(out_degrees)
        variance = sum((d - mean) ** 2 for d in out_degrees) / len(out_degrees)

        if mean < 1.5:
            patterns.linear = 0.7
        if variance > 1:
            patterns.branching = 0.6 + min(variance / 10, 0.3)

        cycles = self.count_cycles()
        if cycles > 0:
            patterns.cyclic = min(cycles / 5, 0.9)

        scores = [
            (NavigationPattern.LINEAR, patterns.linear),
            (NavigationPattern.BRANCHING, patterns.branching),
            (NavigationPattern.CYCLIC, patterns.cyclic),
        ]
        best, best_score = max(scores, key=lambda item: item[1])
        patterns.dominant = best if best_score > 0.3 else NavigationPattern.MIXED
        return patterns

    def count_cycles(self) -> int:
        """
        Count back edges closing a cycle of length >= 3.

        Iterative DFS from every unvisited node; a neighbor on the current
        path closes a cycle when it sits at least three steps back.
        """
        visited: set[str] = set()
        # Nodes on the current path -> position along it
        depth: dict[str, int] = {}
        cycles = 0

        for root in self._graph:
            if root in visited:
                continue
            visited.add(root)
            depth[root] = 0
            stack = [(root, iter(self._graph[root]))]

            while stack:
                node, neighbors = stack[-1]
                for neighbor in neighbors:
                    if neighbor not in visited:
                        visited.add(neighbor)
                        depth[neighbor] = len(stack)
                        stack.append((neighbor, iter(self._graph.get(neighbor, {}))))
                        break
                    if neighbor in depth and depth[node] + 1 - depth[neighbor] >= 3:
                        cycles += 1
                else:
                    stack.pop()
                    del depth[node]

        return cycles

    def generate_feature_vector(self) -> list[float]:
        """[density, complexity, linear, branching, cyclic]"""
        patterns = self.detect_navigation_patterns()
        return [
            self.interaction_density(),
            self.pattern_complexity(),
            patterns.linear,
            patterns.branching,
            patterns.cyclic,
        ]

    def export_analysis_data(self) -> AnalysisExport:
        return AnalysisExport(
            session_id=str(int(self._session_start * 1000)),
            session_duration=self.clock() - self._session_start,
            interaction_count=len(self._history),
            interaction_density=self.interaction_density(),
            pattern_complexity=self.pattern_complexity(),
            navigation_patterns=self.detect_navigation_patterns(),
            transition_edges=self.transition_edges(),
            primary_entities=self.identify_primary_entities(10),
        )

    def reset(self) -> None:
        """Clear history and graph and start a new session."""
        self._history.clear()
        self._graph.clear()
        self._last_transition = None
        self._session_start = self.clock()
