# predictive_loader/prediction/conditional.py
"""
Conditional Probability Model.

Maintains co-occurrence counts N(i, j) for observed transitions j -> i and
derives P(i | j) = N(i, j) / sum_k N(k, j), recomputed for a source after
every update to it. Counts are EMA-updated and decay over wall-clock time.

Scoring for a candidate c given the last three context ids:

    score(c) = sum_j P(c | j) * 0.7  (+ importance boost if c is primary)
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from predictive_loader.base_models import load_state
from predictive_loader.models import (
    ConfidenceThresholds,
    ModelType,
    Prediction,
    PredictionMetrics,
    RegisteredEntity,
    clamp_unit,
)
from predictive_loader.prediction.base import (
    candidate_pool,
    priority_from_probability,
    rank,
    record_hit,
)

logger = logging.getLogger(__name__)


class ConditionalModelConfig(BaseModel):
    """Configuration for the conditional probability model."""

    learning_rate: float = Field(default=0.03, gt=0.0, le=1.0)
    decay_factor: float = Field(default=0.95, gt=0.0, le=1.0, description="Per-hour count decay")
    decay_interval_seconds: float = Field(default=60.0, ge=0.0, description="Minimum time between decays")
    context_window: int = Field(default=3, ge=1, description="Context ids used for scoring")
    transition_weight: float = Field(default=0.7, ge=0.0)
    transition_confidence: float = Field(default=0.3, ge=0.0)
    importance_confidence: float = Field(default=0.2, ge=0.0)
    importance_scale: float = Field(default=10.0, gt=0.0, description="Importance divisor for the boost")
    max_importance_boost: float = Field(default=0.3, ge=0.0)


# =============================================================================
# Serialized state
# =============================================================================


class FrequencyEntry(BaseModel):
    id: str
    frequency: float


class CountEntry(BaseModel):
    source: str
    target: str
    count: float = Field(..., ge=0.0)


class ProbabilityEntry(BaseModel):
    source: str
    target: str
    probability: float = Field(..., ge=0.0, le=1.0)


class ConditionalModelState(BaseModel):
    model_type: ModelType = ModelType.CONDITIONAL
    config: ConditionalModelConfig
    metrics: PredictionMetrics = Field(default_factory=PredictionMetrics)
    last_decay_at: float
    frequencies: list[FrequencyEntry] = Field(default_factory=list)
    counts: list[CountEntry]
    transitions: list[ProbabilityEntry]


# =============================================================================
# Model
# =============================================================================


class ConditionalProbabilityModel:
    """P(next | current) from EMA-weighted co-occurrence counts."""

    model_type = ModelType.CONDITIONAL

    def __init__(
        self,
        config: ConditionalModelConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ConditionalModelConfig()
        self._clock = clock

        # source -> {target -> N(target, source)}
        self._counts: dict[str, dict[str, float]] = {}
        # source -> {target -> P(target | source)}
        self._probabilities: dict[str, dict[str, float]] = {}
        self._frequency: dict[str, float] = {}

        self._metrics = PredictionMetrics()
        self._last_decay_at = clock()

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def observe_transition(self, source: str, target: str, weight: float = 1.0) -> None:
        """
        Blend one observed source -> target transition into the counts.

        ``weight`` is the EMA target, typically the recorder's edge weight,
        so weak interactions shift the distribution less than strong ones.
        """
        if not source or not target:
            return

        self._frequency[source] = self._frequency.get(source, 0.0) + weight
        self._frequency[target] = self._frequency.get(target, 0.0) + weight

        lr = self.config.learning_rate
        targets = self._counts.setdefault(source, {})
        targets[target] = targets.get(target, 0.0) * (1 - lr) + weight * lr

        self._update_probabilities(source)

    def observe(self, context: Sequence[str], target: str, weight: float = 1.0) -> None:
        if context:
            self.observe_transition(context[-1], target, weight)

    def observe_sequence(self, sequence: Sequence[str]) -> None:
        for source, target in zip(sequence, sequence[1:]):
            self.observe_transition(source, target)

    def _update_probabilities(self, source: str) -> None:
        targets = self._counts.get(source)
        if not targets:
            return
        total = sum(targets.values())
        if total <= 0:
            return
        self._probabilities[source] = {target: count / total for target, count in targets.items()}

    def apply_time_decay(self) -> bool:
        """
        Decay all counts by decay_factor ** hours_elapsed.

        Only runs once at least ``decay_interval_seconds`` have passed since
        the previous decay. Returns True if decay was applied.
        """
        now = self._clock()
        elapsed = now - self._last_decay_at
        if elapsed < self.config.decay_interval_seconds:
            return False

        factor = self.config.decay_factor ** (elapsed / 3600)
        for source, targets in self._counts.items():
            for target in targets:
                targets[target] *= factor
            self._update_probabilities(source)

        self._last_decay_at = now
        logger.debug("Applied time decay factor=%.6f after %.0fs", factor, elapsed)
        return True

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def transition_probability(self, source: str, target: str) -> float:
        return self._probabilities.get(source, {}).get(target, 0.0)

    def transitions_from(self, source: str) -> dict[str, float]:
        return dict(self._probabilities.get(source, {}))

    def predict(
        self,
        sequence: Sequence[str],
        candidates: Iterable[RegisteredEntity],
        *,
        primary_entities: Mapping[str, float] | None = None,
        thresholds: ConfidenceThresholds | None = None,
    ) -> list[Prediction]:
        self.apply_time_decay()

        if not sequence:
            return []

        thresholds = thresholds or ConfidenceThresholds()
        primary_entities = primary_entities or {}
        cfg = self.config

        # Most recent distinct ids first
        context: list[str] = []
        for entity_id in reversed(sequence):
            if entity_id not in context:
                context.append(entity_id)
            if len(context) >= cfg.context_window:
                break

        predictions: list[Prediction] = []
        for entity in candidate_pool(candidates, exclude=sequence):
            probability = 0.0
            confidence = 0.0

            for context_id in context:
                p = self.transition_probability(context_id, entity.id)
                probability += p * cfg.transition_weight
                if p > 0:
                    confidence += cfg.transition_confidence

            if entity.id in primary_entities:
                probability += min(primary_entities[entity.id] / cfg.importance_scale, cfg.max_importance_boost)
                confidence += cfg.importance_confidence

            probability = clamp_unit(probability)
            if probability <= thresholds.low:
                continue

            predictions.append(
                Prediction(
                    entity_id=entity.id,
                    probability=probability,
                    confidence=clamp_unit(confidence),
                    priority=priority_from_probability(probability, thresholds),
                    model_tag=self.model_type.value,
                )
            )

        return rank(predictions)

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def path_probability(self, path: Sequence[str]) -> float:
        """Product of transition probabilities along a path."""
        if len(path) < 2:
            return 0.0
        probability = 1.0
        for source, target in zip(path, path[1:]):
            probability *= self.transition_probability(source, target)
        return probability

    def find_most_likely_path(self, start: str, end: str, max_length: int = 5) -> list[str]:
        """
        Most probable path from start to end.

        Breadth-first over transitions with P >= 0.1, stopping once three
        complete paths are found; the best of those is returned.
        """
        if not start or not end:
            return []
        if start == end:
            return [start]

        queue: deque[list[str]] = deque([[start]])
        visited = {start}
        found: list[tuple[float, list[str]]] = []

        while queue and len(found) < 3:
            path = queue.popleft()
            if len(path) > max_length:
                continue

            for nxt, probability in self._probabilities.get(path[-1], {}).items():
                if probability < 0.1 or nxt in visited:
                    continue
                new_path = [*path, nxt]
                if nxt == end:
                    found.append((self.path_probability(new_path), new_path))
                else:
                    queue.append(new_path)
                    visited.add(nxt)

        if not found:
            return []
        found.sort(key=lambda item: item[0], reverse=True)
        return found[0][1]

    def identify_clusters(self, min_cluster_size: int = 3, probability_threshold: float = 0.3) -> list[list[str]]:
        """Groups of entities connected by strong transitions."""
        adjacency = {
            source: [t for t, p in targets.items() if p >= probability_threshold]
            for source, targets in self._probabilities.items()
        }

        visited: set[str] = set()
        clusters: list[list[str]] = []

        for entity_id in self._frequency:
            if entity_id in visited:
                continue

            cluster: list[str] = []
            queue = deque([entity_id])
            while queue:
                current = queue.popleft()
                if current in visited:
                    continue
                visited.add(current)
                cluster.append(current)
                queue.extend(n for n in adjacency.get(current, []) if n not in visited)

            if len(cluster) >= min_cluster_size:
                clusters.append(cluster)

        return clusters

    def most_frequent_entities(self, count: int = 5) -> list[tuple[str, float]]:
        ranked = sorted(self._frequency.items(), key=lambda item: item[1], reverse=True)
        return ranked[:count]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def update_metrics(self, actual_entity_id: str, predictions: Sequence[Prediction]) -> bool:
        return record_hit(self._metrics, actual_entity_id, predictions)

    @property
    def accuracy(self) -> float:
        return self._metrics.accuracy

    def metrics(self) -> dict[str, Any]:
        return {
            "model_type": self.model_type.value,
            "accuracy": self._metrics.accuracy,
            "total_predictions": self._metrics.total_predictions,
            "correct_predictions": self._metrics.correct_predictions,
            "entity_count": len(self._frequency),
            "transition_count": sum(len(t) for t in self._counts.values()),
            "most_frequent": self.most_frequent_entities(5),
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        state = ConditionalModelState(
            config=self.config,
            metrics=self._metrics.model_copy(),
            last_decay_at=self._last_decay_at,
            frequencies=[FrequencyEntry(id=eid, frequency=f) for eid, f in self._frequency.items()],
            counts=[
                CountEntry(source=source, target=target, count=count)
                for source, targets in self._counts.items()
                for target, count in targets.items()
            ],
            transitions=[
                ProbabilityEntry(source=source, target=target, probability=p)
                for source, targets in self._probabilities.items()
                for target, p in targets.items()
            ],
        )
        return state.model_dump(mode="json")

    @classmethod
    def deserialize(
        cls,
        data: Mapping[str, Any],
        clock: Callable[[], float] = time.time,
    ) -> ConditionalProbabilityModel:
        state = load_state(ConditionalModelState, data, "conditional model")

        model = cls(config=state.config, clock=clock)
        model._metrics = state.metrics
        model._last_decay_at = state.last_decay_at
        model._frequency = {entry.id: entry.frequency for entry in state.frequencies}
        for entry in state.counts:
            model._counts.setdefault(entry.source, {})[entry.target] = entry.count
        for entry in state.transitions:
            model._probabilities.setdefault(entry.source, {})[entry.target] = entry.probability
        return model

    def reset(self) -> None:
        self._counts.clear()
        self._probabilities.clear()
        self._frequency.clear()
        self._metrics = PredictionMetrics()
        self._last_decay_at = self._clock()
