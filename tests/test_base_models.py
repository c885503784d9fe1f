# tests/test_base_models.py
"""Tests for DictCompatModel dict-style access and load_state validation."""

import pytest
from pydantic import BaseModel

from predictive_loader.base_models import load_state
from predictive_loader.exceptions import InvalidModelStateError, PredictiveLoaderError
from predictive_loader.models import QueueSizes
from predictive_loader.models.metrics import LoaderMetrics, PredictionMetrics


class _Snapshot(BaseModel):
    name: str
    count: int = 0


class TestDictCompatAccess:
    def test_getitem_returns_field_value(self):
        sizes = QueueSizes(high=2, medium=1)
        assert sizes["high"] == 2
        assert sizes["low"] == 0

    def test_getitem_reaches_properties(self):
        metrics = PredictionMetrics(total_predictions=4, correct_predictions=3)
        assert metrics["accuracy"] == 0.75

    def test_getitem_missing_key_raises(self):
        with pytest.raises(AttributeError):
            QueueSizes()["nonexistent"]

    def test_contains(self):
        metrics = LoaderMetrics()
        assert "loaded_count" in metrics
        assert "nonexistent" not in metrics
        assert 42 not in metrics

    def test_eq_dict(self):
        assert QueueSizes(high=1) == {"high": 1, "medium": 0, "low": 0}
        assert QueueSizes(high=1) != {"high": 2, "medium": 0, "low": 0}

    def test_eq_same_model(self):
        assert QueueSizes(low=3) == QueueSizes(low=3)


class TestLoadState:
    def test_valid_mapping(self):
        state = load_state(_Snapshot, {"name": "markov", "count": 2}, "snapshot")
        assert state.name == "markov"
        assert state.count == 2

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidModelStateError) as excinfo:
            load_state(_Snapshot, ["name"], "snapshot")
        assert excinfo.value.kind == "snapshot"
        assert "list" in excinfo.value.detail

    def test_validation_error_wrapped(self):
        with pytest.raises(InvalidModelStateError) as excinfo:
            load_state(_Snapshot, {"count": "many"}, "snapshot")
        assert isinstance(excinfo.value, PredictiveLoaderError)
        assert "Invalid snapshot state" in str(excinfo.value)
