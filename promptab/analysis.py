from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .config import DEFAULT_ALPHA, DEFAULT_MIN_SAMPLE_SIZE, Settings
from .statistics import VariantScores, analyze_variants, mean, sample_size_needed


logger = logging.getLogger(__name__)

DEFAULT_EFFECT_SIZE = 0.5
DISTRIBUTION_BUCKETS = (1, 2, 3, 4, 5)


@dataclass
class TestResult:
    __test__ = False  # not a pytest class

    input: str
    output: str
    score: float
    timestamp: int  # ms since epoch
    tokens: Optional[int] = None
    cost: Optional[float] = None


@dataclass
class Variant:
    id: str
    name: str
    prompt: str = ""
    results: List[TestResult] = field(default_factory=list)

    @property
    def scores(self) -> List[float]:
        return [r.score for r in self.results]


@dataclass(frozen=True)
class ABTestAnalysis:
    variants: List[Variant]
    winner: Optional[str]
    confidence: float
    recommended_sample_size: Union[int, float]
    is_complete: bool
    insights: List[str]


@dataclass(frozen=True)
class VariantMetrics:
    avg_score: float
    avg_tokens: float
    avg_cost: float
    total_tests: int


def _zero_if_nan(value: float) -> float:
    return 0.0 if math.isnan(value) else value


def format_fixed(value: float, digits: int) -> str:
    """Fixed-point text that rounds exact binary halves up (4.125 -> "4.13").

    Decimal(float) keeps the exact binary value, so only true ties round
    away from zero; the builtin `.2f` would round them to even.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if abs(value) >= 1e21:
        return f"{value:g}"
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


class StatisticalAnalyzer:
    """Turns per-variant scored results into a ship / keep-testing decision.

    Stateless apart from its settings: every call recomputes everything from
    the variants it is given and never mutates them.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()

    def analyze_test(
        self,
        variants: Sequence[Variant],
        min_sample_size: Optional[int] = None,
        alpha: Optional[float] = None,
    ) -> ABTestAnalysis:
        if min_sample_size is None:
            min_sample_size = self.settings.min_sample_size
        if alpha is None:
            alpha = self.settings.alpha

        variants = list(variants)
        stats = analyze_variants(VariantScores(v.name, v.scores) for v in variants)
        results = stats.results

        all_samples_sufficient = all(len(v.results) >= min_sample_size for v in variants)
        has_significant_difference = any(c.significant for c in stats.comparisons)

        insights: List[str] = []

        if not all_samples_sufficient:
            min_results = min(len(v.results) for v in variants)
            insights.append(f"Need {min_sample_size - min_results} more samples for statistical significance")

        if has_significant_difference and stats.winner:
            winner_mean = results[stats.winner].mean
            insights.append(f"{stats.winner} is statistically significant winner (mean: {format_fixed(winner_mean, 2)})")
        elif all_samples_sufficient:
            insights.append("No statistically significant difference detected between variants")

        means = [r.mean for r in results.values()]
        std_devs = [r.std_dev for r in results.values()]
        # np.max/np.min propagate nan; the initial value covers an empty test
        max_mean = np.max(means, initial=-np.inf)
        min_mean = np.min(means, initial=np.inf)
        max_std = np.max(std_devs, initial=-np.inf)
        with np.errstate(divide="ignore", invalid="ignore"):
            effect_size = float((max_mean - min_mean) / max_std)

        # zero effect is treated like an undefined one
        if effect_size == 0 or math.isnan(effect_size):
            effect_size = DEFAULT_EFFECT_SIZE

        recommended_sample_size = sample_size_needed(effect_size, alpha)

        for c in stats.comparisons:
            if c.significant:
                insights.append(f"{c.variant1} vs {c.variant2}: p-value = {format_fixed(c.p_value, 4)} (significant)")

        logger.debug(
            "Analyzed %d variants: winner=%s significant=%s effect_size=%.4f",
            len(variants),
            stats.winner,
            has_significant_difference,
            effect_size,
        )

        return ABTestAnalysis(
            variants=variants,
            winner=stats.winner if has_significant_difference else None,
            confidence=(1 - alpha) * 100 if has_significant_difference else 0,
            recommended_sample_size=recommended_sample_size,
            is_complete=all_samples_sufficient and has_significant_difference,
            insights=insights,
        )

    def calculate_metrics(self, variant: Variant) -> VariantMetrics:
        scores = variant.scores
        tokens = [float(r.tokens or 0) for r in variant.results]
        costs = [float(r.cost or 0) for r in variant.results]

        return VariantMetrics(
            avg_score=_zero_if_nan(mean(scores)),
            avg_tokens=_zero_if_nan(mean(tokens)),
            avg_cost=_zero_if_nan(mean(costs)),
            total_tests=len(variant.results),
        )


def analyze_test(
    variants: Sequence[Variant],
    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
    alpha: float = DEFAULT_ALPHA,
) -> ABTestAnalysis:
    return StatisticalAnalyzer(Settings()).analyze_test(variants, min_sample_size, alpha)


def score_distribution(variant: Variant) -> Dict[int, int]:
    """Count results per whole score 1..5, rounding halves up."""
    counts = {bucket: 0 for bucket in DISTRIBUTION_BUCKETS}
    for r in variant.results:
        rounded = math.floor(r.score + 0.5)
        if rounded in counts:
            counts[rounded] += 1
    return counts
