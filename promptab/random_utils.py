from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

MAX_SCORE = 5.0

Scorer = Callable[[str, str], float]


@dataclass
class SeededRandom:
    """Small reproducible RNG for simulations and placeholder scoring.

    Linear Congruential Generator (LCG):
      seed = (seed * 9301 + 49297) % 233280
      next = seed / 233280

    Not cryptographically secure.
    """

    seed: int

    def next(self) -> float:
        self.seed = (self.seed * 9301 + 49297) % 233280
        return self.seed / 233280.0

    def gauss(self, mu: float = 0.0, sigma: float = 1.0) -> float:
        """Normal deviate via Box-Muller."""
        u1 = 1.0 - self.next()  # (0, 1], keeps log() finite
        u2 = self.next()
        z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return mu + sigma * z

    @staticmethod
    def from_string(seed_str: str) -> "SeededRandom":
        # 31-multiplier string hash folded to a signed 32-bit int
        h = 0
        for ch in seed_str:
            h = (h * 31 + ord(ch)) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
        return SeededRandom(abs(h))


def placeholder_scorer(seed: Optional[str] = None) -> Scorer:
    """Scorer that ignores its arguments and returns a value in [0, 5).

    Stands in for a real quality judge so a test run can be exercised end
    to end without one.
    """
    rng = SeededRandom.from_string(seed) if seed else None

    def score(test_input: str, output: str) -> float:
        return (rng.next() if rng else random.random()) * MAX_SCORE

    return score
