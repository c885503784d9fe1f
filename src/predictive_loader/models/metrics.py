"""Metrics and report models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from predictive_loader.base_models import DictCompatModel


class ConfidenceThresholds(BaseModel):
    """Probability cut points used to assign prediction priorities."""

    high: float = Field(default=0.75, ge=0.0, le=1.0)
    medium: float = Field(default=0.40, ge=0.0, le=1.0)
    low: float = Field(default=0.20, ge=0.0, le=1.0)


class PredictionMetrics(DictCompatModel):
    """Accuracy feedback for a predictor."""

    total_predictions: int = 0
    correct_predictions: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_predictions == 0:
            return 0.0
        return self.correct_predictions / self.total_predictions

    def record(self, hit: bool) -> None:
        self.total_predictions += 1
        if hit:
            self.correct_predictions += 1


class QueueSizes(DictCompatModel):
    """Current queue lengths per tier."""

    high: int = 0
    medium: int = 0
    low: int = 0


class LoaderMetrics(DictCompatModel):
    """Scheduler counters. Monotonically non-decreasing until reset."""

    loaded_count: int = 0
    preloaded_count: int = 0
    used_preloaded_count: int = 0
    network_savings_kb: float = 0.0
    failed_count: int = 0

    @property
    def preload_hit_rate(self) -> float:
        if self.preloaded_count == 0:
            return 0.0
        return self.used_preloaded_count / self.preloaded_count


class MetricsReport(DictCompatModel):
    """Combined metrics across prediction and loading."""

    accuracy: float = 0.0
    total_predictions: int = 0
    correct_predictions: int = 0
    loaded_count: int = 0
    preloaded_count: int = 0
    used_preloaded_count: int = 0
    network_savings_kb: float = 0.0
    failed_count: int = 0
    preload_hit_rate: float = 0.0
    queue_sizes: QueueSizes = Field(default_factory=QueueSizes)
    thresholds: ConfidenceThresholds | None = None
