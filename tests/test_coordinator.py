# tests/test_coordinator.py
"""
Tests for the prediction coordinator.

Covers:
- Model factory and unknown model types
- Context building from pattern snapshots
- Top-3 accuracy feedback
- Threshold adaptation (lowering, raising, floors, dead band)
- Serialization round trip and reset
"""

import pytest

from predictive_loader.behavior import InteractionRecorder
from predictive_loader.exceptions import InvalidModelStateError, UnknownModelTypeError
from predictive_loader.models import ModelType, PatternSnapshot, Prediction, PredictionMetrics, RegisteredEntity
from predictive_loader.prediction import (
    AttentionSequenceModel,
    ConditionalProbabilityModel,
    CoordinatorConfig,
    MarkovChainModel,
    PredictionCoordinator,
    PredictionModel,
    ThresholdPolicy,
    create_model,
    load_model,
)
from predictive_loader.prediction.base import record_hit

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FixedModel:
    """Model that always predicts the same entities."""

    model_type = ModelType.CONDITIONAL

    def __init__(self, entity_ids=("B",)):
        self.entity_ids = list(entity_ids)
        self.observed: list[tuple[list[str], str, float]] = []
        self.contexts: list[list[str]] = []
        self._metrics = PredictionMetrics()

    def predict(self, sequence, candidates, *, primary_entities=None, thresholds=None):
        self.contexts.append(list(sequence))
        return [Prediction(entity_id=eid, probability=0.9) for eid in self.entity_ids]

    def observe(self, context, target, weight=1.0):
        self.observed.append((list(context), target, weight))

    def observe_sequence(self, sequence):
        pass

    def update_metrics(self, actual_entity_id, predictions):
        return record_hit(self._metrics, actual_entity_id, predictions)

    def metrics(self):
        return {"model_type": "fixed", "accuracy": self._metrics.accuracy}

    def serialize(self):
        return {}

    def reset(self):
        self._metrics = PredictionMetrics()


def _make_coordinator(model=None, **config) -> PredictionCoordinator:
    return PredictionCoordinator(CoordinatorConfig(**config), model=model or FixedModel())


def _feed(coordinator: PredictionCoordinator, hits: int, misses: int = 0) -> None:
    for actual in ["B"] * hits + ["Z"] * misses:
        coordinator.predict_component_usage(PatternSnapshot(), [])
        coordinator.update_metrics(actual)


# ---------------------------------------------------------------------------
# Model factory
# ---------------------------------------------------------------------------


class TestModelFactory:
    @pytest.mark.parametrize(
        "model_type, expected",
        [
            ("conditional", ConditionalProbabilityModel),
            ("markov", MarkovChainModel),
            ("attention", AttentionSequenceModel),
            (ModelType.MARKOV, MarkovChainModel),
        ],
    )
    def test_create_model(self, model_type, expected):
        model = create_model(model_type)
        assert isinstance(model, expected)
        assert isinstance(model, PredictionModel)

    def test_create_model_with_options(self):
        model = create_model("markov", {"order": 4})
        assert model.config.order == 4

    def test_unknown_model_type(self):
        with pytest.raises(UnknownModelTypeError):
            create_model("transformer")

    def test_unknown_model_type_in_config(self):
        with pytest.raises(ValueError):
            CoordinatorConfig(model_type="transformer")

    def test_load_model_dispatches(self):
        model = create_model("markov")
        model.observe_sequence(["A", "B"])
        assert isinstance(load_model(model.serialize()), MarkovChainModel)

    def test_load_model_without_type(self):
        with pytest.raises(InvalidModelStateError):
            load_model({"config": {}})

    def test_load_model_unknown_type(self):
        with pytest.raises(UnknownModelTypeError):
            load_model({"model_type": "transformer"})

    def test_coordinator_builds_configured_model(self):
        coordinator = PredictionCoordinator(CoordinatorConfig(model_type="attention"))
        assert coordinator.model_type == ModelType.ATTENTION


# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------


class TestPrediction:
    def test_missing_inputs_predict_nothing(self):
        coordinator = _make_coordinator()
        assert coordinator.predict_component_usage(None, []) == []
        assert coordinator.predict_component_usage(PatternSnapshot(), None) == []

    def test_context_is_chronological_and_bounded(self, clock):
        recorder = InteractionRecorder(clock=clock)
        for entity_id in ["A", "B", "B", "C", "D", "E", "F"]:
            recorder.record(entity_id, {"type": "click"})

        model = FixedModel()
        coordinator = _make_coordinator(model, context_length=3)
        coordinator.predict_component_usage(recorder.get_current_patterns(), [])

        assert model.contexts == [["D", "E", "F"]]

    def test_real_model_end_to_end(self, clock):
        coordinator = PredictionCoordinator(CoordinatorConfig(model_type="conditional"))
        coordinator.observe(["A"], "B")

        recorder = InteractionRecorder(clock=clock)
        recorder.record("A", {"type": "click"})

        predictions = coordinator.predict_component_usage(
            recorder.get_current_patterns(),
            [RegisteredEntity(id="A"), RegisteredEntity(id="B")],
        )
        assert [p.entity_id for p in predictions] == ["B"]
        assert coordinator.last_predictions == predictions

    def test_observe_forwards_to_model(self):
        model = FixedModel()
        coordinator = _make_coordinator(model)
        coordinator.observe(["A"], "B")
        coordinator.observe(["B"], "C", 0.25)
        assert model.observed == [(["A"], "B", 1.0), (["B"], "C", 0.25)]


# ---------------------------------------------------------------------------
# Feedback and thresholds
# ---------------------------------------------------------------------------


class TestThresholds:
    def test_hit_and_miss(self):
        coordinator = _make_coordinator()
        coordinator.predict_component_usage(PatternSnapshot(), [])

        assert coordinator.update_metrics("B") is True
        assert coordinator.update_metrics("Z") is False
        assert coordinator.accuracy == pytest.approx(0.5)

    def test_only_top_three_count(self):
        coordinator = _make_coordinator(FixedModel(["A", "B", "C", "D"]))
        coordinator.predict_component_usage(PatternSnapshot(), [])
        assert coordinator.update_metrics("D") is False

    def test_no_adjustment_before_minimum(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=49)
        assert coordinator.thresholds.model_dump() == {"high": 0.75, "medium": 0.40, "low": 0.20}

    def test_high_accuracy_lowers_thresholds(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=50)

        thresholds = coordinator.thresholds
        assert thresholds.high == pytest.approx(0.75 * 0.95)
        assert thresholds.medium == pytest.approx(0.40 * 0.95)
        assert thresholds.low == pytest.approx(0.20 * 0.95)

    def test_low_accuracy_raises_thresholds(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=0, misses=50)

        thresholds = coordinator.thresholds
        assert thresholds.high == pytest.approx(0.75 * 1.05)
        assert thresholds.medium == pytest.approx(0.40 * 1.05)
        assert thresholds.low == pytest.approx(0.20 * 1.05)

    def test_dead_band_leaves_thresholds(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=35, misses=15)
        assert coordinator.thresholds.high == 0.75

    def test_floors(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=100)

        thresholds = coordinator.thresholds
        assert thresholds.high == pytest.approx(0.6)
        assert thresholds.medium == pytest.approx(0.3)
        assert thresholds.low == pytest.approx(0.1)

    def test_ceilings(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=0, misses=100)

        thresholds = coordinator.thresholds
        assert thresholds.high == pytest.approx(0.9)
        assert thresholds.medium == pytest.approx(0.6)
        assert thresholds.low == pytest.approx(0.3)

    def test_custom_policy(self):
        coordinator = _make_coordinator(policy=ThresholdPolicy(min_predictions=2))
        _feed(coordinator, hits=2)
        assert coordinator.thresholds.high == pytest.approx(0.75 * 0.95)

    def test_adjust_reports_movement(self):
        coordinator = _make_coordinator()
        assert coordinator.adjust_thresholds() is False
        _feed(coordinator, hits=50)
        assert coordinator.adjust_thresholds() is True

    def test_model_sees_feedback(self):
        model = FixedModel()
        coordinator = _make_coordinator(model)
        _feed(coordinator, hits=3)
        assert model.metrics()["accuracy"] == 1.0

    def test_get_metrics(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=1, misses=1)

        metrics = coordinator.get_metrics()
        assert metrics["total_predictions"] == 2
        assert metrics["correct_predictions"] == 1
        assert metrics["thresholds"]["high"] == 0.75
        assert metrics["model"]["model_type"] == "fixed"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_round_trip(self):
        coordinator = PredictionCoordinator(CoordinatorConfig(model_type="markov"))
        coordinator.model.observe_sequence(["A", "B", "C"])
        coordinator._thresholds = coordinator.thresholds.model_copy(update={"high": 0.7})

        restored = PredictionCoordinator.deserialize(coordinator.serialize())

        assert restored.model_type == ModelType.MARKOV
        assert restored.thresholds.high == 0.7

        patterns = PatternSnapshot.model_validate(
            {
                "recent_interactions": [
                    {"entity_id": "B", "event_type": "click", "timestamp": 2.0},
                    {"entity_id": "A", "event_type": "click", "timestamp": 1.0},
                ]
            }
        )
        entities = [RegisteredEntity(id=name) for name in "ABCD"]
        original = coordinator.predict_component_usage(patterns, entities)
        assert restored.predict_component_usage(patterns, entities) == original

    def test_invalid_state(self):
        with pytest.raises(InvalidModelStateError):
            PredictionCoordinator.deserialize({"config": {}})

    def test_reset(self):
        coordinator = _make_coordinator()
        _feed(coordinator, hits=50)
        coordinator.reset()

        assert coordinator.thresholds.high == 0.75
        assert coordinator.accuracy == 0.0
        assert coordinator.last_predictions == []
