"""search/partition.py — Split the outer dimension into per-worker ranges."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ConfigurationError


@dataclass(frozen=True)
class Partition:
    """Half-open encoded range ``[low, high)`` owned by worker *index*."""

    index: int
    low: int
    high: int

    def __len__(self) -> int:
        return self.high - self.low

    def __contains__(self, encoded: object) -> bool:
        return isinstance(encoded, int) and self.low <= encoded < self.high


def partition_domain(low: int, high: int, workers: int) -> list[Partition]:
    """Tile ``[low, high)`` with *workers* contiguous, non-empty partitions.

    Boundary ``i`` is ``low + (span * i) // workers``: exact integer floor
    rather than rounding, which truncates the same way a float product cast
    to an integer would.  Every partition has ``span // workers`` or
    ``span // workers + 1`` values.  Boundaries need not lie on the step grid;
    scanners align to it themselves (see :meth:`.odometer.Odometer.aligned`).
    """
    span = high - low
    if workers < 1:
        raise ConfigurationError(f"workers must be >= 1, got {workers}")
    if span < workers:
        raise ConfigurationError(
            f"cannot split a domain of {span} values across {workers} workers"
        )
    bounds = [low + (span * i) // workers for i in range(workers + 1)]
    return [Partition(i, bounds[i], bounds[i + 1]) for i in range(workers)]
