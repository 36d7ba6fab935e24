"""Configuration dataclasses for the constant-discovery search."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError
from .scoring.strategies import ScoreFunction, get_score_function

COLUMN_MODES = ("raw", "encoded", "both")


@dataclass(frozen=True)
class SearchConfig:
    """Defines one exhaustive search.  Built once per run, never mutated."""

    dimensions: int = 2
    # Encoded stride per dimension (1 → every representable float32).
    step: int = 1024 * 16
    # Number of best candidates to retain (K).
    keep: int = 5
    strategy: str = "coirrational"
    # None → one worker per available CPU.
    workers: int | None = None
    # Rows scored per numpy call in the hot loop.
    block_size: int = 65_536

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the search cannot run."""
        if self.dimensions < 1:
            raise ConfigurationError(f"dimensions must be >= 1, got {self.dimensions}")
        if self.step < 1:
            raise ConfigurationError(f"step must be >= 1, got {self.step}")
        if self.keep < 1:
            raise ConfigurationError(f"keep must be >= 1, got {self.keep}")
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.block_size < 1:
            raise ConfigurationError(f"block_size must be >= 1, got {self.block_size}")
        fn = self.score_function()
        if fn.dimensions != self.dimensions:
            raise ConfigurationError(
                f"score function {self.strategy!r} is {fn.dimensions}-dimensional, "
                f"but dimensions={self.dimensions}"
            )

    def score_function(self) -> ScoreFunction:
        return get_score_function(self.strategy)

    def resolved_workers(self) -> int:
        """Worker count: the explicit override, else the CPU count (min 1)."""
        if self.workers is not None:
            return self.workers
        return max(os.cpu_count() or 1, 1)


@dataclass(frozen=True)
class OutputConfig:
    """Where and how results are persisted."""

    output_dir: Path = Path("out")
    # Base name of the CSV file (``<output_dir>/<name>.csv``).
    name: str = "coirrational"
    columns: str = "both"  # "raw" | "encoded" | "both"
    # Optional SQLite ledger of every run.
    ledger_path: Path | None = None

    def validate(self) -> None:
        if self.columns not in COLUMN_MODES:
            raise ConfigurationError(
                f"columns must be one of {COLUMN_MODES}, got {self.columns!r}"
            )
        if not self.name:
            raise ConfigurationError("output name must not be empty")


@dataclass(frozen=True)
class RunConfig:
    """Top-level knobs for one invocation."""

    search: SearchConfig = field(default_factory=SearchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    show_progress: bool = True


# Named runs: 1-D sanity check, coirrational pair, 3-D product.
PRESETS: dict[str, SearchConfig] = {
    "test1d": SearchConfig(dimensions=1, step=1, keep=5, strategy="midpoint"),
    "coirrational": SearchConfig(dimensions=2, step=1024 * 16, keep=5, strategy="coirrational"),
    "test3d": SearchConfig(dimensions=3, step=1024 * 256, keep=5, strategy="product"),
}
