# predictive_loader/prediction/markov.py
"""
Markov Chain Model.

One transition matrix per order 1..K (default K=2). Each matrix maps a
context tuple to next-entity probabilities. Observations are EMA-blended
into the existing row and the row is renormalized.

Prediction tries the longest context first. With back-off enabled,
lower orders are merged in without overwriting higher-order entries.
With back-off disabled, the highest order with any match wins outright.
No match at all falls back to a uniform distribution over candidates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from predictive_loader.base_models import load_state
from predictive_loader.exceptions import InvalidModelStateError
from predictive_loader.models import (
    UNIFORM_CONFIDENCE,
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

ContextKey = tuple[str, ...]


class MarkovModelConfig(BaseModel):
    """Configuration for the Markov chain model."""

    order: int = Field(default=2, ge=1, le=8, description="Maximum context length K")
    learning_rate: float = Field(default=0.05, gt=0.0, le=1.0)
    use_backoff: bool = Field(default=True, description="Merge lower orders into higher-order results")


class MarkovMetrics(PredictionMetrics):
    sequences_observed: int = 0


# =============================================================================
# Serialized state
# =============================================================================


class MarkovTransition(BaseModel):
    source: list[str] = Field(..., min_length=1)
    target: str
    probability: float = Field(..., ge=0.0, le=1.0)


class MarkovMatrix(BaseModel):
    order: int = Field(..., ge=1)
    transitions: list[MarkovTransition]


class MarkovModelState(BaseModel):
    model_type: ModelType = ModelType.MARKOV
    config: MarkovModelConfig
    metrics: MarkovMetrics = Field(default_factory=MarkovMetrics)
    matrices: list[MarkovMatrix]


# =============================================================================
# Model
# =============================================================================


class MarkovChainModel:
    """Bounded-order Markov chain with optional back-off."""

    model_type = ModelType.MARKOV

    def __init__(self, config: MarkovModelConfig | None = None) -> None:
        self.config = config or MarkovModelConfig()
        self._matrices: dict[int, dict[ContextKey, dict[str, float]]] = {
            order: {} for order in range(1, self.config.order + 1)
        }
        self._metrics = MarkovMetrics()

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def update_transition(self, context: Sequence[str], target: str, weight: float = 1.0) -> None:
        """Blend one context -> target observation into the matrix for len(context), EMA target ``weight``."""
        order = len(context)
        matrix = self._matrices.get(order)
        if matrix is None:
            return

        lr = self.config.learning_rate
        row = matrix.setdefault(tuple(context), {})
        row[target] = row.get(target, 0.0) * (1 - lr) + lr * weight
        self._normalize(row)

    @staticmethod
    def _normalize(row: dict[str, float]) -> None:
        total = sum(row.values())
        if total <= 0:
            return
        for target in row:
            row[target] /= total

    def observe(self, context: Sequence[str], target: str, weight: float = 1.0) -> None:
        """Update every order whose context suffix is available."""
        if not context:
            return
        for order in range(1, self.config.order + 1):
            if len(context) < order:
                break
            self.update_transition(context[-order:], target, weight)

    def observe_sequence(self, sequence: Sequence[str]) -> None:
        if len(sequence) < 2:
            return

        self._metrics.sequences_observed += 1
        for order in range(1, self.config.order + 1):
            for i in range(len(sequence) - order):
                self.update_transition(sequence[i : i + order], sequence[i + order])
        logger.debug("Observed sequence of %d entities", len(sequence))

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def transition_probability(self, context: Sequence[str], target: str) -> float:
        matrix = self._matrices.get(len(context), {})
        return matrix.get(tuple(context), {}).get(target, 0.0)

    def predict(
        self,
        sequence: Sequence[str],
        candidates: Iterable[RegisteredEntity],
        *,
        primary_entities: Mapping[str, float] | None = None,
        thresholds: ConfidenceThresholds | None = None,
    ) -> list[Prediction]:
        if not sequence:
            return []

        pool = candidate_pool(candidates, exclude=sequence)
        if not pool:
            return []

        thresholds = thresholds or ConfidenceThresholds()
        available = {entity.id for entity in pool}
        max_order = self.config.order

        # entity_id -> (probability, order)
        found: dict[str, tuple[float, int]] = {}
        for order in range(min(max_order, len(sequence)), 0, -1):
            row = self._matrices[order].get(tuple(sequence[-order:]))
            if not row:
                continue

            for entity_id, probability in row.items():
                if entity_id in available and entity_id not in found:
                    found[entity_id] = (probability, order)

            if found and not self.config.use_backoff:
                break

        if found:
            predictions = [
                self._prediction(entity_id, probability, order / max_order, order, thresholds)
                for entity_id, (probability, order) in found.items()
            ]
        else:
            uniform = 1 / len(pool)
            predictions = [
                self._prediction(entity.id, uniform, UNIFORM_CONFIDENCE, 0, thresholds) for entity in pool
            ]

        return rank(predictions)

    def _prediction(
        self,
        entity_id: str,
        probability: float,
        confidence: float,
        order: int,
        thresholds: ConfidenceThresholds,
    ) -> Prediction:
        probability = clamp_unit(probability)
        return Prediction(
            entity_id=entity_id,
            probability=probability,
            confidence=clamp_unit(confidence),
            priority=priority_from_probability(probability, thresholds),
            model_tag=self.model_type.value,
            order=order,
        )

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
            "sequences_observed": self._metrics.sequences_observed,
            "order": self.config.order,
            "matrix_sizes": [
                {
                    "order": order,
                    "contexts": len(matrix),
                    "total_transitions": sum(len(row) for row in matrix.values()),
                }
                for order, matrix in self._matrices.items()
            ],
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        state = MarkovModelState(
            config=self.config,
            metrics=self._metrics.model_copy(),
            matrices=[
                MarkovMatrix(
                    order=order,
                    transitions=[
                        MarkovTransition(source=list(context), target=target, probability=probability)
                        for context, row in matrix.items()
                        for target, probability in row.items()
                    ],
                )
                for order, matrix in self._matrices.items()
            ],
        )
        return state.model_dump(mode="json")

    @classmethod
    def deserialize(cls, data: Mapping[str, Any]) -> MarkovChainModel:
        state = load_state(MarkovModelState, data, "markov model")

        model = cls(config=state.config)
        model._metrics = state.metrics
        for matrix in state.matrices:
            if matrix.order not in model._matrices:
                raise InvalidModelStateError(
                    "markov model",
                    f"matrix order {matrix.order} exceeds configured order {state.config.order}",
                )
            target_matrix = model._matrices[matrix.order]
            for entry in matrix.transitions:
                if len(entry.source) != matrix.order:
                    raise InvalidModelStateError(
                        "markov model",
                        f"context {entry.source} does not match order {matrix.order}",
                    )
                target_matrix.setdefault(tuple(entry.source), {})[entry.target] = entry.probability
        return model

    def reset(self) -> None:
        for matrix in self._matrices.values():
            matrix.clear()
        self._metrics = MarkovMetrics()
