# predictive_loader/analysis/__init__.py
"""Offline evaluation and statistical comparison of prediction models."""

from predictive_loader.analysis.evaluation import (
    EvaluationResult,
    ModelComparison,
    compare_models,
    evaluate_model,
)
from predictive_loader.analysis.statistics import (
    ConfidenceInterval,
    TTestResult,
    cohens_d,
    independent_t_test,
    mean_confidence_interval,
)

__all__ = [
    "ConfidenceInterval",
    "EvaluationResult",
    "ModelComparison",
    "TTestResult",
    "cohens_d",
    "compare_models",
    "evaluate_model",
    "independent_t_test",
    "mean_confidence_interval",
]
