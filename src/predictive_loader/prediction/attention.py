# predictive_loader/prediction/attention.py
"""
Attention Sequence Model.

A small attention-weighted sequence predictor:

- every entity has an embedding vector and an output projection scalar
- every attention head keeps a table of pairwise (source, target) weights
- the context is attended per head (softmax over pair weights, weighted sum
  of embeddings per position) and the heads are averaged
- the last position's output is scored against every known embedding,
  plus that entity's projection, and softmax-normalized

Training is a sign-based step: the target gets +1, every other entity -1,
scaled by the learning rate. There is no backpropagation.

Unseen embeddings and attention pairs are initialized lazily from a
generator seeded by (seed, key), so two models with the same seed and the
same parameters always produce the same values for the same keys.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, model_validator
from scipy.special import softmax

from predictive_loader.base_models import load_state
from predictive_loader.config import DEFAULT_SEED
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

PairKey = tuple[str, str]


class AttentionModelConfig(BaseModel):
    """Configuration for the attention sequence model."""

    embedding_size: int = Field(default=32, ge=1)
    sequence_length: int = Field(default=10, ge=1, description="Most recent ids attended to")
    num_heads: int = Field(default=4, ge=1)
    learning_rate: float = Field(default=0.01, gt=0.0, le=1.0)
    seed: int = Field(default=DEFAULT_SEED, description="Seed for lazy parameter initialization")
    init_scale: float = Field(default=0.1, gt=0.0)
    missing_probability: float = Field(default=0.01, ge=0.0, le=1.0)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class AttentionMetrics(PredictionMetrics):
    sequences_trained: int = 0


# =============================================================================
# Serialized state
# =============================================================================


class EmbeddingEntry(BaseModel):
    id: str
    vector: list[float]


class AttentionEntry(BaseModel):
    source: str
    target: str
    weight: float


class ProjectionEntry(BaseModel):
    id: str
    value: float


class AttentionModelState(BaseModel):
    model_type: ModelType = ModelType.ATTENTION
    config: AttentionModelConfig
    metrics: AttentionMetrics = Field(default_factory=AttentionMetrics)
    embeddings: list[EmbeddingEntry]
    attention: list[list[AttentionEntry]]
    projection: list[ProjectionEntry]

    @model_validator(mode="after")
    def _check_shapes(self) -> AttentionModelState:
        size = self.config.embedding_size
        for entry in self.embeddings:
            if len(entry.vector) != size:
                raise ValueError(f"embedding {entry.id!r} has {len(entry.vector)} dims, expected {size}")
        if len(self.attention) != self.config.num_heads:
            raise ValueError(f"{len(self.attention)} attention heads, expected {self.config.num_heads}")
        return self


# =============================================================================
# Model
# =============================================================================


class AttentionSequenceModel:
    """Multi-head attention over the recent entity sequence."""

    model_type = ModelType.ATTENTION

    def __init__(self, config: AttentionModelConfig | None = None) -> None:
        self.config = config or AttentionModelConfig()
        self._embeddings: dict[str, np.ndarray] = {}
        self._attention: list[dict[PairKey, float]] = [{} for _ in range(self.config.num_heads)]
        self._projection: dict[str, float] = {}
        self._metrics = AttentionMetrics()

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def _rng(self, *parts: object) -> np.random.Generator:
        key = "|".join(str(p) for p in (self.config.seed, *parts))
        digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
        return np.random.default_rng(int.from_bytes(digest, "little"))

    def register(self, entity_id: str) -> np.ndarray:
        """Return the embedding for an entity, creating it on first sight."""
        embedding = self._embeddings.get(entity_id)
        if embedding is None:
            rng = self._rng("embedding", entity_id)
            embedding = (rng.random(self.config.embedding_size) - 0.5) * self.config.init_scale
            self._embeddings[entity_id] = embedding
        return embedding

    def _pair_weight(self, head: int, source: str, target: str) -> float:
        table = self._attention[head]
        key = (source, target)
        if key not in table:
            table[key] = float(self._rng("attention", head, source, target).random() * self.config.init_scale)
        return table[key]

    @property
    def known_entities(self) -> list[str]:
        return list(self._embeddings)

    def parameter_count(self) -> int:
        return (
            len(self._embeddings) * self.config.embedding_size
            + sum(len(table) for table in self._attention)
            + len(self._projection)
        )

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def compute_attention(self, sequence: Sequence[str]) -> np.ndarray:
        """
        Attend over ``sequence`` and return one combined vector per position.

        Shape is (len(sequence), embedding_size). Heads are averaged.
        """
        n = len(sequence)
        if n == 0:
            return np.zeros((0, self.config.embedding_size))

        values = np.stack([self.register(entity_id) for entity_id in sequence])
        combined = np.zeros((n, self.config.embedding_size))

        for head in range(self.config.num_heads):
            scores = np.array(
                [[self._pair_weight(head, source, target) for target in sequence] for source in sequence]
            )
            weights = softmax(scores, axis=1)
            combined += weights @ values

        return combined / self.config.num_heads

    def next_entity_distribution(self, outputs: np.ndarray) -> dict[str, float]:
        """Softmax over all known entities from the last attended position."""
        if len(outputs) == 0 or not self._embeddings:
            return {}

        last = outputs[-1]
        ids = list(self._embeddings)
        for entity_id in ids:
            self._projection.setdefault(entity_id, 0.0)

        matrix = np.stack([self._embeddings[entity_id] for entity_id in ids])
        projection = np.array([self._projection[entity_id] for entity_id in ids])
        probabilities = softmax(matrix @ last + projection)
        return dict(zip(ids, probabilities.tolist()))

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def train_on_sequence(self, sequence: Sequence[str]) -> None:
        """Run one update per position of the most recent ``sequence_length`` ids."""
        if len(sequence) < 2:
            return

        self._metrics.sequences_trained += 1
        effective = list(sequence[-self.config.sequence_length :])
        for entity_id in effective:
            self.register(entity_id)

        for i in range(len(effective) - 1):
            self._update_for_example(effective[: i + 1], effective[i + 1])

    def observe_sequence(self, sequence: Sequence[str]) -> None:
        self.train_on_sequence(sequence)

    def observe(self, context: Sequence[str], target: str, weight: float = 1.0) -> None:
        if not context:
            return
        effective = list(context[-self.config.sequence_length :])
        for entity_id in (*effective, target):
            self.register(entity_id)
        self._update_for_example(effective, target, weight)

    def _update_for_example(self, context: list[str], target: str, weight: float = 1.0) -> None:
        # Initializes any unseen context pairs before they are nudged
        self.compute_attention(context)

        # Weak interactions take proportionally smaller steps
        lr = self.config.learning_rate * weight
        signal = {entity_id: 1.0 if entity_id == target else -1.0 for entity_id in self._embeddings}

        for entity_id, s in signal.items():
            self._projection[entity_id] = self._projection.get(entity_id, 0.0) + lr * s
            self._embeddings[entity_id] = self._embeddings[entity_id] + lr * s * 0.01

        # Pair updates follow the signal of the last context entity
        step = lr * signal.get(context[-1], 0.0) * 0.01
        for table in self._attention:
            for source in context:
                for pair_target in context:
                    key = (source, pair_target)
                    table[key] = table.get(key, 0.0) + step

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

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
        effective = list(sequence[-self.config.sequence_length :])
        distribution = self.next_entity_distribution(self.compute_attention(effective))

        predictions = []
        for entity in pool:
            probability = clamp_unit(distribution.get(entity.id) or self.config.missing_probability)
            predictions.append(
                Prediction(
                    entity_id=entity.id,
                    probability=probability,
                    confidence=self.config.confidence,
                    priority=priority_from_probability(probability, thresholds),
                    model_tag=self.model_type.value,
                )
            )

        return rank(predictions)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def prune_entities(self, usage_threshold: int = 5) -> int:
        """
        Drop entities referenced fewer than ``usage_threshold`` times across
        all attention tables. Returns the number of entities removed.
        """
        usage: dict[str, int] = {}
        for table in self._attention:
            for source, target in table:
                usage[source] = usage.get(source, 0) + 1
                usage[target] = usage.get(target, 0) + 1

        removed = {entity_id for entity_id in self._embeddings if usage.get(entity_id, 0) < usage_threshold}
        if not removed:
            return 0

        for entity_id in removed:
            self._embeddings.pop(entity_id, None)
            self._projection.pop(entity_id, None)

        for head, table in enumerate(self._attention):
            self._attention[head] = {
                key: weight for key, weight in table.items() if key[0] not in removed and key[1] not in removed
            }

        logger.info("Pruned %d rarely attended entities", len(removed))
        return len(removed)

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
            "sequences_trained": self._metrics.sequences_trained,
            "model_size": {
                "entities": len(self._embeddings),
                "embedding_size": self.config.embedding_size,
                "attention_heads": self.config.num_heads,
                "parameters": self.parameter_count(),
            },
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        state = AttentionModelState(
            config=self.config,
            metrics=self._metrics.model_copy(),
            embeddings=[EmbeddingEntry(id=eid, vector=vector.tolist()) for eid, vector in self._embeddings.items()],
            attention=[
                [
                    AttentionEntry(source=source, target=target, weight=weight)
                    for (source, target), weight in table.items()
                ]
                for table in self._attention
            ],
            projection=[ProjectionEntry(id=eid, value=value) for eid, value in self._projection.items()],
        )
        return state.model_dump(mode="json")

    @classmethod
    def deserialize(cls, data: Mapping[str, Any]) -> AttentionSequenceModel:
        state = load_state(AttentionModelState, data, "attention model")

        model = cls(config=state.config)
        model._metrics = state.metrics
        model._embeddings = {entry.id: np.array(entry.vector, dtype=float) for entry in state.embeddings}
        model._attention = [
            {(entry.source, entry.target): entry.weight for entry in head} for head in state.attention
        ]
        model._projection = {entry.id: entry.value for entry in state.projection}
        return model

    def reset(self) -> None:
        self._embeddings.clear()
        self._attention = [{} for _ in range(self.config.num_heads)]
        self._projection.clear()
        self._metrics = AttentionMetrics()
