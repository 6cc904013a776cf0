from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

from .analysis import TestResult, Variant
from .config import Settings
from .random_utils import Scorer, placeholder_scorer


logger = logging.getLogger(__name__)

Generator = Callable[[str], str]
Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_test_inputs(text: str) -> List[str]:
    """One test input per line; blank lines are dropped."""
    return [line for line in text.split("\n") if line.strip()]


def render_prompt(template: str, test_input: str, placeholder: Optional[str] = None) -> str:
    if placeholder is None:
        placeholder = Settings.from_env().placeholder
    # only the first placeholder is substituted
    return template.replace(placeholder, test_input, 1)


def default_variants() -> List[Variant]:
    return [
        Variant(id="A", name="Variant A"),
        Variant(id="B", name="Variant B"),
    ]


def add_variant(variants: Sequence[Variant], max_variants: Optional[int] = None) -> List[Variant]:
    """Return a new list with one more lettered variant appended.

    The cap defaults to the configured `Settings.max_variants`.
    """
    if max_variants is None:
        max_variants = Settings.from_env().max_variants
    if len(variants) >= max_variants:
        raise ValueError(f"A test supports at most {max_variants} variants")
    variant_id = chr(65 + len(variants))
    return [*variants, Variant(id=variant_id, name=f"Variant {variant_id}")]


def clear_results(variants: Sequence[Variant]) -> List[Variant]:
    return [Variant(id=v.id, name=v.name, prompt=v.prompt) for v in variants]


def run_test(
    variants: Sequence[Variant],
    test_inputs: Sequence[str],
    generate: Generator,
    scorer: Optional[Scorer] = None,
    clock: Optional[Clock] = None,
    placeholder: Optional[str] = None,
) -> int:
    """Run every (variant, input) trial and append the scored results.

    ``generate`` maps a rendered prompt to model output; ``scorer`` maps
    ``(input, output)`` to a score. Variants with a blank prompt are skipped.
    A trial whose generation or scoring fails is logged and dropped, and the
    run moves on. The placeholder defaults to the configured one. Returns the
    number of results appended.
    """
    inputs = [i for i in test_inputs if i.strip()]
    if not inputs:
        raise ValueError("Please enter test inputs (one per line)")

    if scorer is None:
        scorer = placeholder_scorer()
    if clock is None:
        clock = _now_ms
    if placeholder is None:
        placeholder = Settings.from_env().placeholder

    active = [v for v in variants if v.prompt.strip()]
    logger.info("Running A/B test: %d variants x %d inputs", len(active), len(inputs))

    appended = 0
    for variant in active:
        for test_input in inputs:
            try:
                prompt = render_prompt(variant.prompt, test_input, placeholder)
                output = generate(prompt)
                score = scorer(test_input, output)
            except Exception:
                logger.exception("Error testing variant %s", variant.id)
                continue

            variant.results.append(
                TestResult(input=test_input, output=output, score=score, timestamp=clock())
            )
            appended += 1

    logger.info("A/B test finished: %d results appended", appended)
    return appended
