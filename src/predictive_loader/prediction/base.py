# predictive_loader/prediction/base.py
"""
Prediction model protocol and shared helpers.

All three models (conditional, markov, attention) satisfy the same
structural protocol, so the coordinator can swap them without
subclassing::

    from predictive_loader.prediction import ConditionalProbabilityModel, MarkovChainModel

    coordinator = PredictionCoordinator(model=MarkovChainModel())
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from predictive_loader.models import (
    ConfidenceThresholds,
    ModelType,
    Prediction,
    PredictionMetrics,
    Priority,
    RegisteredEntity,
)

# Number of top-ranked predictions that count as a hit
TOP_K_HIT = 3

# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class PredictionModel(Protocol):
    """
    Protocol for interchangeable sequence predictors.

    ``predict`` returns predictions sorted by descending probability and
    never includes an entity that appears in ``sequence``.
    """

    model_type: ModelType

    def predict(
        self,
        sequence: Sequence[str],
        candidates: Iterable[RegisteredEntity],
        *,
        primary_entities: Mapping[str, float] | None = None,
        thresholds: ConfidenceThresholds | None = None,
    ) -> list[Prediction]: ...

    def observe(self, context: Sequence[str], target: str, weight: float = 1.0) -> None: ...

    def observe_sequence(self, sequence: Sequence[str]) -> None: ...

    def update_metrics(self, actual_entity_id: str, predictions: Sequence[Prediction]) -> bool: ...

    def metrics(self) -> dict[str, Any]: ...

    def serialize(self) -> dict[str, Any]: ...

    def reset(self) -> None: ...


# =============================================================================
# Helpers
# =============================================================================


def priority_from_probability(probability: float, thresholds: ConfidenceThresholds) -> Priority:
    """Map a probability onto a priority tier."""
    if probability >= thresholds.high:
        return Priority.HIGH
    if probability >= thresholds.medium:
        return Priority.MEDIUM
    return Priority.LOW


def candidate_pool(candidates: Iterable[RegisteredEntity], exclude: Iterable[str]) -> list[RegisteredEntity]:
    """Deduplicate candidates by id, preserving order, and drop excluded ids."""
    excluded = set(exclude)
    seen: set[str] = set()
    pool: list[RegisteredEntity] = []
    for entity in candidates:
        if entity.id in excluded or entity.id in seen:
            continue
        seen.add(entity.id)
        pool.append(entity)
    return pool


def rank(predictions: Iterable[Prediction]) -> list[Prediction]:
    """Sort by probability, highest first."""
    return sorted(predictions, key=lambda p: p.probability, reverse=True)


def record_hit(metrics: PredictionMetrics, actual_entity_id: str, predictions: Sequence[Prediction]) -> bool:
    """Count a prediction round; a hit means the actual entity was in the top K."""
    top = [p.entity_id for p in predictions[:TOP_K_HIT]]
    hit = actual_entity_id in top
    metrics.record(hit)
    return hit

