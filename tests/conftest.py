"""Shared fixtures for the promptab tests."""

from typing import Optional, Sequence

import pytest

from promptab.analysis import TestResult, Variant


def _make_variant(
    variant_id: str,
    scores: Sequence[float],
    name: Optional[str] = None,
    prompt: str = "",
) -> Variant:
    """Build a Variant whose results carry the given scores, one second apart."""
    results = [
        TestResult(input=f"input {i}", output=f"output {i}", score=s, timestamp=1_700_000_000_000 + i * 1000)
        for i, s in enumerate(scores)
    ]
    return Variant(id=variant_id, name=name or variant_id, prompt=prompt, results=results)


@pytest.fixture
def make_variant():
    return _make_variant


@pytest.fixture
def clear_winner_variants():
    return [
        _make_variant("A", [4.1, 3.9, 4.0, 4.2, 3.8]),
        _make_variant("B", [1.1, 0.9, 1.0, 1.2, 0.8]),
    ]


@pytest.fixture
def no_difference_variants():
    # both centred on 3.0 with matching spread, n = 30
    return [
        _make_variant("A", [2.5, 3.5] * 15),
        _make_variant("B", [3.5, 2.5] * 15),
    ]
