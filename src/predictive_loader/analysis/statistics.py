# predictive_loader/analysis/statistics.py
"""
Statistical helpers for comparing prediction runs.

All helpers fail closed: too few samples yields a degenerate interval or a
"not significant" result instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from pydantic import BaseModel, Field
from scipy import stats

logger = logging.getLogger(__name__)


class ConfidenceInterval(BaseModel):
    mean: float
    lower: float
    upper: float
    level: float = Field(..., gt=0.0, lt=1.0)
    n: int = Field(..., ge=0)

    @property
    def half_width(self) -> float:
        return (self.upper - self.lower) / 2


class TTestResult(BaseModel):
    """Welch's two-sample t-test with effect size."""

    t_statistic: float = 0.0
    p_value: float = 1.0
    df: float = 0.0
    mean_a: float = 0.0
    mean_b: float = 0.0
    sd_a: float = 0.0
    sd_b: float = 0.0
    n_a: int = 0
    n_b: int = 0
    mean_difference: float = 0.0
    cohens_d: float = 0.0
    alpha: float = 0.05
    significant: bool = False


def mean_confidence_interval(samples: Sequence[float], confidence: float = 0.95) -> ConfidenceInterval:
    """
    Student-t confidence interval for the mean.

    Empty input gives (0, 0); a single sample gives (mean, mean).
    """
    values = np.asarray(samples, dtype=float)
    n = len(values)

    if n == 0:
        return ConfidenceInterval(mean=0.0, lower=0.0, upper=0.0, level=confidence, n=0)

    mean = float(values.mean())
    if n < 2:
        return ConfidenceInterval(mean=mean, lower=mean, upper=mean, level=confidence, n=n)

    sem = float(stats.sem(values))
    half = sem * float(stats.t.ppf((1 + confidence) / 2, n - 1))
    return ConfidenceInterval(mean=mean, lower=mean - half, upper=mean + half, level=confidence, n=n)


def cohens_d(a: Sequence[float], b: Sequence[float]) -> float:
    """Standardized mean difference using the pooled standard deviation."""
    x = np.asarray(a, dtype=float)
    y = np.asarray(b, dtype=float)
    n_a, n_b = len(x), len(y)
    if n_a < 2 or n_b < 2:
        return 0.0

    pooled_var = ((n_a - 1) * x.var(ddof=1) + (n_b - 1) * y.var(ddof=1)) / (n_a + n_b - 2)
    if pooled_var <= 0:
        return 0.0
    return float((x.mean() - y.mean()) / np.sqrt(pooled_var))


def independent_t_test(a: Sequence[float], b: Sequence[float], alpha: float = 0.05) -> TTestResult:
    """
    Welch's t-test (unequal variances) between two independent groups.

    Fewer than two samples in either group, or zero variance in both,
    returns ``significant=False`` with p_value 1.0.
    """
    x = np.asarray(a, dtype=float)
    y = np.asarray(b, dtype=float)

    result = TTestResult(
        n_a=len(x),
        n_b=len(y),
        mean_a=float(x.mean()) if len(x) else 0.0,
        mean_b=float(y.mean()) if len(y) else 0.0,
        alpha=alpha,
    )
    result.mean_difference = result.mean_a - result.mean_b

    if len(x) < 2 or len(y) < 2:
        logger.debug("t-test skipped: n_a=%d n_b=%d", len(x), len(y))
        return result

    result.sd_a = float(x.std(ddof=1))
    result.sd_b = float(y.std(ddof=1))
    if result.sd_a == 0 and result.sd_b == 0:
        return result

    test = stats.ttest_ind(x, y, equal_var=False)
    result.t_statistic = float(test.statistic)
    result.p_value = float(test.pvalue)
    result.df = float(test.df)
    result.cohens_d = cohens_d(x, y)
    result.significant = result.p_value < alpha
    return result
