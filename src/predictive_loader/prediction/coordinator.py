# predictive_loader/prediction/coordinator.py
"""
PredictionCoordinator - owns the active model and adaptive thresholds.

Responsibilities:
- Build the model context from a pattern snapshot
- Delegate prediction to the active model
- Track accuracy against the previous prediction cycle
- Adapt the confidence thresholds once enough feedback has accumulated
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from predictive_loader.base_models import load_state
from predictive_loader.config import DEFAULT_MODEL_TYPE
from predictive_loader.exceptions import InvalidModelStateError, UnknownModelTypeError
from predictive_loader.models import (
    ConfidenceThresholds,
    ModelType,
    PatternSnapshot,
    Prediction,
    PredictionMetrics,
    RegisteredEntity,
)
from predictive_loader.prediction.attention import AttentionModelConfig, AttentionSequenceModel
from predictive_loader.prediction.base import PredictionModel, record_hit
from predictive_loader.prediction.conditional import ConditionalModelConfig, ConditionalProbabilityModel
from predictive_loader.prediction.markov import MarkovChainModel, MarkovModelConfig

logger = logging.getLogger(__name__)


class ThresholdPolicy(BaseModel):
    """When and how far the confidence thresholds move."""

    min_predictions: int = Field(default=50, ge=0, description="Feedback needed before adapting")
    high_accuracy: float = Field(default=0.85, ge=0.0, le=1.0)
    low_accuracy: float = Field(default=0.65, ge=0.0, le=1.0)
    lower_factor: float = Field(default=0.95, gt=0.0, le=1.0)
    raise_factor: float = Field(default=1.05, ge=1.0)
    floors: ConfidenceThresholds = Field(default_factory=lambda: ConfidenceThresholds(high=0.6, medium=0.3, low=0.1))
    ceilings: ConfidenceThresholds = Field(default_factory=lambda: ConfidenceThresholds(high=0.9, medium=0.6, low=0.3))


class CoordinatorConfig(BaseModel):
    """Configuration for the prediction coordinator."""

    model_type: ModelType = Field(default=DEFAULT_MODEL_TYPE, validate_default=True)
    context_length: int = Field(default=5, ge=1, description="Recent entity ids passed to the model")
    thresholds: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)
    policy: ThresholdPolicy = Field(default_factory=ThresholdPolicy)
    model_options: dict[str, Any] = Field(default_factory=dict, description="Passed to the model config")


class CoordinatorState(BaseModel):
    config: CoordinatorConfig
    thresholds: ConfidenceThresholds
    metrics: PredictionMetrics
    model: dict[str, Any]


# =============================================================================
# Model factory
# =============================================================================

_MODEL_CLASSES: dict[ModelType, tuple[type, type[BaseModel]]] = {
    ModelType.CONDITIONAL: (ConditionalProbabilityModel, ConditionalModelConfig),
    ModelType.MARKOV: (MarkovChainModel, MarkovModelConfig),
    ModelType.ATTENTION: (AttentionSequenceModel, AttentionModelConfig),
}


def _resolve_model_type(model_type: ModelType | str) -> ModelType:
    try:
        return ModelType(model_type)
    except ValueError as exc:
        raise UnknownModelTypeError(model_type) from exc


def create_model(
    model_type: ModelType | str,
    options: Mapping[str, Any] | None = None,
    clock: Callable[[], float] = time.time,
) -> PredictionModel:
    """
    Construct a prediction model by type.

    Args:
        model_type: "conditional", "markov" or "attention".
        options: Field values for that model's config.
        clock: Time source for models that decay over wall-clock time.
    """
    resolved = _resolve_model_type(model_type)
    model_cls, config_cls = _MODEL_CLASSES[resolved]
    config = config_cls.model_validate(dict(options or {}))
    if resolved == ModelType.CONDITIONAL:
        return ConditionalProbabilityModel(config=config, clock=clock)
    return model_cls(config=config)


def load_model(data: Mapping[str, Any], clock: Callable[[], float] = time.time) -> PredictionModel:
    """Rebuild a serialized model, dispatching on its ``model_type``."""
    if not isinstance(data, Mapping) or "model_type" not in data:
        raise InvalidModelStateError("prediction model", "missing model_type")
    resolved = _resolve_model_type(data["model_type"])
    if resolved == ModelType.CONDITIONAL:
        return ConditionalProbabilityModel.deserialize(data, clock=clock)
    model_cls, _ = _MODEL_CLASSES[resolved]
    return model_cls.deserialize(data)


# =============================================================================
# Coordinator
# =============================================================================


class PredictionCoordinator:
    """
    Owns the active prediction model and the adaptive thresholds.

    Usage::

        coordinator = PredictionCoordinator(CoordinatorConfig(model_type="markov"))
        predictions = coordinator.predict_component_usage(recorder.get_current_patterns(), entities)
        ...
        coordinator.update_metrics("checkout")  # what the user actually used
    """

    def __init__(
        self,
        config: CoordinatorConfig | None = None,
        model: PredictionModel | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CoordinatorConfig()
        self._model: PredictionModel = model or create_model(
            self.config.model_type, self.config.model_options, clock=clock
        )
        self._thresholds = self.config.thresholds.model_copy()
        self._metrics = PredictionMetrics()
        self._last_predictions: list[Prediction] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def model(self) -> PredictionModel:
        return self._model

    @property
    def model_type(self) -> ModelType:
        return self._model.model_type

    @property
    def thresholds(self) -> ConfidenceThresholds:
        return self._thresholds.model_copy()

    @property
    def last_predictions(self) -> list[Prediction]:
        return list(self._last_predictions)

    @property
    def accuracy(self) -> float:
        return self._metrics.accuracy

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def context_from(self, patterns: PatternSnapshot) -> list[str]:
        return patterns.context_sequence(self.config.context_length)

    def predict_component_usage(
        self,
        patterns: PatternSnapshot | None,
        registered_entities: Iterable[RegisteredEntity] | None,
    ) -> list[Prediction]:
        """Predict the next entities from the latest patterns."""
        if patterns is None or registered_entities is None:
            return []

        context = self.context_from(patterns)
        predictions = self._model.predict(
            context,
            list(registered_entities),
            primary_entities=patterns.primary_importance(),
            thresholds=self._thresholds,
        )
        self._last_predictions = predictions

        logger.debug(
            "Predicted %d entities from context %s (top=%s)",
            len(predictions),
            context,
            predictions[0].entity_id if predictions else None,
        )
        return predictions

    def observe(self, context: Sequence[str], target: str, weight: float = 1.0) -> None:
        """Feed one observed transition, weighted by interaction strength, to the active model."""
        self._model.observe(context, target, weight)

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def update_metrics(self, actual_entity_id: str) -> bool:
        """
        Score the previous prediction cycle against what was actually used.

        A hit means the entity was among the top three predictions.
        Thresholds are re-evaluated after every update.
        """
        hit = record_hit(self._metrics, actual_entity_id, self._last_predictions)
        self._model.update_metrics(actual_entity_id, self._last_predictions)
        self.adjust_thresholds()
        return hit

    def adjust_thresholds(self) -> bool:
        """Lower thresholds when accurate, raise them when not. Returns True if they moved."""
        policy = self.config.policy
        if self._metrics.total_predictions < policy.min_predictions:
            return False

        accuracy = self._metrics.accuracy
        current = self._thresholds

        if accuracy > policy.high_accuracy:
            updated = ConfidenceThresholds(
                high=max(current.high * policy.lower_factor, policy.floors.high),
                medium=max(current.medium * policy.lower_factor, policy.floors.medium),
                low=max(current.low * policy.lower_factor, policy.floors.low),
            )
        elif accuracy < policy.low_accuracy:
            updated = ConfidenceThresholds(
                high=min(current.high * policy.raise_factor, policy.ceilings.high),
                medium=min(current.medium * policy.raise_factor, policy.ceilings.medium),
                low=min(current.low * policy.raise_factor, policy.ceilings.low),
            )
        else:
            return False

        if updated == current:
            return False

        logger.info(
            "Thresholds adjusted at accuracy %.3f: high=%.3f medium=%.3f low=%.3f",
            accuracy,
            updated.high,
            updated.medium,
            updated.low,
        )
        self._thresholds = updated
        return True

    def get_metrics(self) -> dict[str, Any]:
        return {
            "total_predictions": self._metrics.total_predictions,
            "correct_predictions": self._metrics.correct_predictions,
            "accuracy": self._metrics.accuracy,
            "thresholds": self._thresholds.model_dump(),
            "model": self._model.metrics(),
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        state = CoordinatorState(
            config=self.config,
            thresholds=self._thresholds,
            metrics=self._metrics,
            model=self._model.serialize(),
        )
        return state.model_dump(mode="json")

    @classmethod
    def deserialize(cls, data: Mapping[str, Any], clock: Callable[[], float] = time.time) -> PredictionCoordinator:
        state = load_state(CoordinatorState, data, "coordinator")
        model = load_model(state.model, clock=clock)

        coordinator = cls(config=state.config.model_copy(update={"model_type": model.model_type}), model=model)
        coordinator._thresholds = state.thresholds
        coordinator._metrics = state.metrics
        return coordinator

    def reset(self) -> None:
        """Clear the model, feedback and thresholds."""
        self._model.reset()
        self._thresholds = self.config.thresholds.model_copy()
        self._metrics = PredictionMetrics()
        self._last_predictions = []
