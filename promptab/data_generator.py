from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import List, Mapping, Optional, Sequence

import pandas as pd

from .analysis import TestResult, Variant
from .random_utils import MAX_SCORE, SeededRandom


RESULT_COLUMNS = ["variant_id", "variant", "input", "output", "score", "tokens", "cost", "timestamp"]


def generate_variant_results(
    target_means: Mapping[str, float],
    sample_size: int,
    spread: float = 0.5,
    start_date: Optional[datetime] = None,
    seed: Optional[str] = None,
) -> List[Variant]:
    """Generate synthetic scored results for a simulated test.

    - One variant per entry of ``target_means`` (name -> mean score), with
      letter ids A, B, C...
    - ``sample_size`` results per variant, normally distributed around the
      target mean with standard deviation ``spread``, clipped to [0, 5].
    - Trials are one minute apart, so timestamps never decrease.
    """
    if start_date is None:
        start_date = datetime.now()

    if not target_means:
        raise ValueError("target_means must name at least one variant")
    if sample_size <= 0:
        raise ValueError("sample_size must be > 0")
    if spread < 0:
        raise ValueError("spread must be >= 0")
    for name, target in target_means.items():
        if not (0 <= target <= MAX_SCORE):
            raise ValueError(f"target mean for {name!r} must be between 0 and {MAX_SCORE:g}")

    rng = SeededRandom.from_string(seed) if seed else None

    def gauss(mu: float, sigma: float) -> float:
        return rng.gauss(mu, sigma) if rng else random.gauss(mu, sigma)

    base = start_date.replace(second=0, microsecond=0)

    variants: List[Variant] = []
    for index, (name, target) in enumerate(target_means.items()):
        variant = Variant(id=chr(65 + index), name=name, prompt="")
        for i in range(sample_size):
            ts = base + timedelta(minutes=i)
            score = max(0.0, min(MAX_SCORE, gauss(target, spread)))
            variant.results.append(
                TestResult(
                    input=f"input_{i:04d}",
                    output="",
                    score=score,
                    timestamp=int(ts.timestamp() * 1000),
                )
            )
        variants.append(variant)

    return variants


def results_to_frame(variants: Sequence[Variant]) -> pd.DataFrame:
    """Flatten variants into one row per result."""
    rows = [
        {
            "variant_id": v.id,
            "variant": v.name,
            "input": r.input,
            "output": r.output,
            "score": r.score,
            "tokens": r.tokens,
            "cost": r.cost,
            "timestamp": pd.to_datetime(r.timestamp, unit="ms"),
        }
        for v in variants
        for r in v.results
    ]
    if not rows:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def export_to_csv(variants: Sequence[Variant]) -> str:
    """Export all results to a CSV string with ISO timestamps."""
    out = results_to_frame(variants)
    out["timestamp"] = pd.to_datetime(out["timestamp"]).dt.strftime("%Y-%m-%dT%H:%M:%S")
    return out[RESULT_COLUMNS].to_csv(index=False)
