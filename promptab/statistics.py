from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np


# Fixed z-critical values. Any confidence level that is not an exact key
# falls back to the 90% value.
Z_CRITICAL: Dict[float, float] = {0.95: 1.96, 0.99: 2.576}
Z_CRITICAL_DEFAULT = 1.645

# Sample size formula constants: 95% confidence, 80% power.
Z_ALPHA = 1.96
Z_BETA = 0.84

# Abramowitz & Stegun 7.1.26
_ERF_A1 = 0.254829592
_ERF_A2 = -0.284496736
_ERF_A3 = 1.421413741
_ERF_A4 = -1.453152027
_ERF_A5 = 1.061405429
_ERF_P = 0.3275911


@dataclass(frozen=True)
class StatisticalResult:
    mean: float
    variance: float
    std_dev: float
    confidence_interval: Tuple[float, float]
    sample_size: int


@dataclass(frozen=True)
class Comparison:
    variant1: str
    variant2: str
    p_value: float
    significant: bool


@dataclass(frozen=True)
class VariantsAnalysis:
    results: Dict[str, StatisticalResult]
    winner: Optional[str]
    comparisons: List[Comparison]


class VariantScores(NamedTuple):
    name: str
    scores: Sequence[float]


def _divide(numerator: float, denominator: float) -> float:
    """IEEE division: x/0 gives +-inf and 0/0 gives nan instead of raising."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(numerator) / np.float64(denominator))


def mean(scores: Sequence[float]) -> float:
    """Arithmetic mean. An empty sequence yields nan."""
    return _divide(sum(scores, 0.0), len(scores))


def variance(scores: Sequence[float]) -> float:
    """Population variance (divides by n, not n - 1)."""
    m = mean(scores)
    return _divide(sum(((x - m) * (x - m) for x in scores), 0.0), len(scores))


def std_dev(scores: Sequence[float]) -> float:
    return math.sqrt(variance(scores))


def confidence_interval(scores: Sequence[float], confidence: float = 0.95) -> Tuple[float, float]:
    """Normal-approximation interval around the mean.

    Only 0.95 and 0.99 have their own critical values; every other level
    uses 1.645.
    """
    m = mean(scores)
    z = Z_CRITICAL.get(confidence, Z_CRITICAL_DEFAULT)
    margin = z * _divide(std_dev(scores), math.sqrt(len(scores)))
    return (m - margin, m + margin)


def z_score(mean1: float, mean2: float, std1: float, std2: float, n1: int, n2: int) -> float:
    """Two-sample (unpooled) z statistic for the difference in means."""
    se = math.sqrt(_divide(std1 * std1, n1) + _divide(std2 * std2, n2))
    return _divide(mean1 - mean2, se)


def _erf(x: float) -> float:
    sign = -1 if x < 0 else 1
    x = abs(x)
    t = 1.0 / (1.0 + _ERF_P * x)
    y = 1.0 - (((((_ERF_A5 * t + _ERF_A4) * t) + _ERF_A3) * t + _ERF_A2) * t + _ERF_A1) * t * math.exp(-x * x)
    return sign * y


def p_value(z: float) -> float:
    """Two-tailed p-value for a standard normal statistic."""
    z = abs(z)
    tail = 1 - 0.5 * (1 + _erf(z / math.sqrt(2)))
    return 2 * tail


def is_significant(p: float, alpha: float = 0.05) -> bool:
    return bool(p < alpha)


def sample_size_needed(effect_size: float, alpha: float = 0.05, power: float = 0.8):
    """Samples per variant needed to detect ``effect_size``.

    Always uses the 95% confidence / 80% power constants; ``alpha`` and
    ``power`` are accepted but do not enter the formula. A zero effect
    yields ``inf``.
    """
    with np.errstate(divide="ignore", over="ignore"):
        n = np.ceil(2 * (np.float64(Z_ALPHA + Z_BETA) / np.float64(effect_size)) ** 2)
    return int(n) if np.isfinite(n) else float(n)


def describe(scores: Sequence[float], confidence: float = 0.95) -> StatisticalResult:
    return StatisticalResult(
        mean=mean(scores),
        variance=variance(scores),
        std_dev=std_dev(scores),
        confidence_interval=confidence_interval(scores, confidence),
        sample_size=len(scores),
    )


def analyze_variants(variants: Iterable[Tuple[str, Sequence[float]]]) -> VariantsAnalysis:
    """Describe every variant, compare every unordered pair, pick the top mean.

    ``variants`` is a sequence of ``(name, scores)`` pairs such as
    :class:`VariantScores`. The winner is the first variant with the
    strictly highest mean; it is not checked for significance here.
    """
    pairs = [VariantScores(name, list(scores)) for name, scores in variants]

    results: Dict[str, StatisticalResult] = {}
    for v in pairs:
        results[v.name] = describe(v.scores)

    comparisons: List[Comparison] = []
    for i in range(len(pairs)):
        for j in range(i + 1, len(pairs)):
            r1 = results[pairs[i].name]
            r2 = results[pairs[j].name]
            z = z_score(r1.mean, r2.mean, r1.std_dev, r2.std_dev, r1.sample_size, r2.sample_size)
            p = p_value(z)
            comparisons.append(
                Comparison(
                    variant1=pairs[i].name,
                    variant2=pairs[j].name,
                    p_value=p,
                    significant=is_significant(p),
                )
            )

    winner: Optional[str] = None
    for name, result in results.items():
        if winner is None or result.mean > results[winner].mean:
            winner = name

    return VariantsAnalysis(results=results, winner=winner, comparisons=comparisons)
