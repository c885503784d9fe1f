# predictive_loader/analysis/evaluation.py
"""
Offline model evaluation.

Replays recorded sequences step by step: predict the next entity from the
preceding context, score the top-3 hit, then let the model observe the
real transition. Two models replayed over the same data can be compared
with Welch's t-test on their per-step hits.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from predictive_loader.analysis.statistics import (
    ConfidenceInterval,
    TTestResult,
    independent_t_test,
    mean_confidence_interval,
)
from predictive_loader.models import RegisteredEntity
from predictive_loader.prediction.base import PredictionModel

logger = logging.getLogger(__name__)


class EvaluationResult(BaseModel):
    model_type: str
    hits: list[float] = Field(default_factory=list, description="1.0 per top-3 hit, 0.0 per miss")
    hit_rate: float = 0.0
    interval: ConfidenceInterval | None = None

    @property
    def steps(self) -> int:
        return len(self.hits)


class ModelComparison(BaseModel):
    baseline: EvaluationResult
    candidate: EvaluationResult
    test: TTestResult

    @property
    def improvement(self) -> float:
        return self.candidate.hit_rate - self.baseline.hit_rate


def evaluate_model(
    model: PredictionModel,
    sequences: Iterable[Sequence[str]],
    candidates: Iterable[RegisteredEntity],
    context_length: int = 5,
    confidence: float = 0.95,
) -> EvaluationResult:
    """Replay ``sequences`` through ``model``, learning online as it goes."""
    pool = list(candidates)
    hits: list[float] = []

    for sequence in sequences:
        for i in range(1, len(sequence)):
            context = list(sequence[max(0, i - context_length) : i])
            target = sequence[i]

            predictions = model.predict(context, pool)
            hit = model.update_metrics(target, predictions)
            hits.append(1.0 if hit else 0.0)

            model.observe(context, target)

    hit_rate = sum(hits) / len(hits) if hits else 0.0
    logger.debug("Evaluated %s over %d steps: hit rate %.3f", model.model_type.value, len(hits), hit_rate)

    return EvaluationResult(
        model_type=model.model_type.value,
        hits=hits,
        hit_rate=hit_rate,
        interval=mean_confidence_interval(hits, confidence),
    )


def compare_models(
    baseline: PredictionModel,
    candidate: PredictionModel,
    sequences: Iterable[Sequence[str]],
    candidates: Iterable[RegisteredEntity],
    context_length: int = 5,
    alpha: float = 0.05,
) -> ModelComparison:
    """Evaluate two models on the same data and test the difference in hit rate."""
    replay = [list(sequence) for sequence in sequences]
    pool = list(candidates)

    baseline_result = evaluate_model(baseline, replay, pool, context_length)
    candidate_result = evaluate_model(candidate, replay, pool, context_length)

    return ModelComparison(
        baseline=baseline_result,
        candidate=candidate_result,
        test=independent_t_test(candidate_result.hits, baseline_result.hits, alpha=alpha),
    )
