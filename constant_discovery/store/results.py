"""store/results.py — CSV result table for one search run."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Sequence

import numpy as np

from ..errors import ConfigurationError, ResultWriteError
from ..scoring.strategies import SENTINEL_SCORE
from ..search.topk import Candidate

logger = logging.getLogger(__name__)


def format_float32(value: float) -> str:
    """Shortest decimal string that round-trips to the same float32."""
    return str(np.float32(value))


def header_row(dimensions: int, columns: str = "both") -> list[str]:
    """``x0..x{D-1}``, optionally ``x0_encoded..``, then ``score``."""
    if columns not in ("raw", "encoded", "both"):
        raise ConfigurationError(f"unknown column mode {columns!r}")
    header: list[str] = []
    if columns in ("raw", "both"):
        header += [f"x{i}" for i in range(dimensions)]
    if columns in ("encoded", "both"):
        header += [f"x{i}_encoded" for i in range(dimensions)]
    header.append("score")
    return header


def candidate_row(candidate: Candidate, columns: str = "both") -> list[str]:
    row: list[str] = []
    if columns in ("raw", "both"):
        row += [format_float32(x) for x in candidate.coordinate]
    if columns in ("encoded", "both"):
        row += [str(u) for u in candidate.encoded]
    row.append(format_float32(candidate.score))
    return row


class CsvResultWriter:
    """Write the sorted winners to ``<output_dir>/<name>.csv``.

    The output directory is created before the file is opened.  Any failure
    to create it or to write the file raises :class:`ResultWriteError`.
    """

    def __init__(
        self,
        output_dir: str | Path = "out",
        name: str = "results",
        columns: str = "both",
    ) -> None:
        if columns not in ("raw", "encoded", "both"):
            raise ConfigurationError(f"unknown column mode {columns!r}")
        self.output_dir = Path(output_dir)
        self.name = name
        self.columns = columns

    @property
    def path(self) -> Path:
        return self.output_dir / f"{self.name}.csv"

    def ensure_output_dir(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResultWriteError(
                f"cannot create output directory {self.output_dir}: {exc}"
            ) from exc

    def write(self, candidates: Sequence[Candidate], dimensions: int) -> Path:
        self.ensure_output_dir()
        rows = [c for c in candidates if c.score < SENTINEL_SCORE]
        try:
            with open(self.path, "w", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(header_row(dimensions, self.columns))
                for candidate in rows:
                    writer.writerow(candidate_row(candidate, self.columns))
        except OSError as exc:
            raise ResultWriteError(f"cannot write results to {self.path}: {exc}") from exc
        logger.info("Results saved → %s  (%d rows)", self.path, len(rows))
        return self.path


def read_results(path: str | Path) -> list[dict[str, str]]:
    """Load a result table written by :class:`CsvResultWriter`."""
    with open(path, newline="") as f:
        return list(csv.DictReader(f))
