from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_DB = Path(__file__).resolve().parent.parent / "promptab.db"

DEFAULT_MIN_SAMPLE_SIZE = 30
DEFAULT_ALPHA = 0.05
MAX_VARIANTS = 4
PLACEHOLDER = "{{input}}"


@dataclass(frozen=True)
class Settings:
    """Tunables shared by the analyzer, the runner and the history store.

    Environment overrides (see :meth:`from_env`):
      PROMPTAB_MIN_SAMPLE_SIZE, PROMPTAB_ALPHA, PROMPTAB_MAX_VARIANTS,
      PROMPTAB_PLACEHOLDER, PROMPTAB_DB
    """

    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE
    alpha: float = DEFAULT_ALPHA
    max_variants: int = MAX_VARIANTS
    placeholder: str = PLACEHOLDER
    db_path: Path = DEFAULT_DB

    def __post_init__(self) -> None:
        if self.min_sample_size < 1:
            raise ValueError("min_sample_size must be >= 1")
        if not (0 < self.alpha < 1):
            raise ValueError("alpha must be in (0, 1)")
        if self.max_variants < 2:
            raise ValueError("max_variants must be >= 2")
        if not self.placeholder:
            raise ValueError("placeholder must not be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        kwargs = {}
        raw = env.get("PROMPTAB_MIN_SAMPLE_SIZE")
        if raw:
            try:
                kwargs["min_sample_size"] = int(raw)
            except ValueError:
                raise ValueError(f"PROMPTAB_MIN_SAMPLE_SIZE must be an integer, got {raw!r}") from None

        raw = env.get("PROMPTAB_ALPHA")
        if raw:
            try:
                kwargs["alpha"] = float(raw)
            except ValueError:
                raise ValueError(f"PROMPTAB_ALPHA must be a number, got {raw!r}") from None

        raw = env.get("PROMPTAB_MAX_VARIANTS")
        if raw:
            try:
                kwargs["max_variants"] = int(raw)
            except ValueError:
                raise ValueError(f"PROMPTAB_MAX_VARIANTS must be an integer, got {raw!r}") from None

        raw = env.get("PROMPTAB_PLACEHOLDER")
        if raw:
            kwargs["placeholder"] = raw

        raw = env.get("PROMPTAB_DB")
        if raw:
            kwargs["db_path"] = Path(raw).expanduser()

        return cls(**kwargs)
