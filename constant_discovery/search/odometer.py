"""
search/odometer.py — Multi-dimensional enumeration over encoded coordinates.

The odometer treats a D-dimensional coordinate as a D-digit counter whose
digits are float32 bit patterns (see :mod:`.bits`).  The last dimension is the
fastest digit.  Advancing a digit past its bound wraps it *modulo the bound*
and carries one step into the next-slower digit; the run ends when the first
(outer) digit overflows.

Because the wrap is modular rather than a reset to zero, a sweep of an inner
dimension starts at ``(previous_last + step) - bound``.  When ``step`` does not
divide the bound the inner lattice is therefore sheared from sweep to sweep.

A partition of the outer axis rarely starts on the step grid.
:meth:`Odometer.aligned` resumes a full-domain scan at the partition's first
grid point, inner digits included, so concatenating the partitions' sequences
reproduces the single-range sequence exactly.
"""

from __future__ import annotations

from typing import Iterator

import numpy as np
from numpy.typing import NDArray

from .bits import ONE_ENCODED, decode


def count_points(step: int, low: int, high: int) -> int:
    """Number of points a single sweep visits on ``[low, high)``."""
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")
    if high <= low:
        return 0
    return -(-(high - low) // step)


def sweep_origin(dimensions: int, step: int, sweeps: int) -> tuple[int, ...]:
    """Inner digits of a full-domain scan when its outer digit first reaches
    ``sweeps * step``.

    Each inner digit is ``(advances * step) mod ONE_ENCODED`` and carries once
    per wrap, so the first time the next-slower digit has seen ``carries``
    carries this digit has made ``ceil(carries * ONE_ENCODED / step)`` advances.
    """
    digits = []
    carries = sweeps
    for _ in range(dimensions - 1):
        advances = -(-carries * ONE_ENCODED // step)
        digits.append(advances * step - carries * ONE_ENCODED)
        carries = advances
    return tuple(digits)


class Odometer:
    """Enumerate every coordinate of one partition.

    Parameters
    ----------
    dimensions:
        Number of coordinate components (D >= 1).
    step:
        Encoded stride applied to every dimension.
    low, high:
        Encoded half-open range of the outer dimension (the worker's partition).
        Inner dimensions always range over ``[0, ONE_ENCODED)``.

    An odometer is single-use: iterating it (either via ``iter`` or
    :meth:`blocks`) consumes its state.
    """

    def __init__(
        self,
        dimensions: int,
        step: int,
        low: int = 0,
        high: int = ONE_ENCODED,
    ) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        if step < 1:
            raise ValueError(f"step must be >= 1, got {step}")
        if not 0 <= low < high <= ONE_ENCODED:
            raise ValueError(
                f"outer range must satisfy 0 <= low < high <= {ONE_ENCODED:#x}, "
                f"got [{low}, {high})"
            )
        self.dimensions = dimensions
        self.step = step
        self.low = low
        self.high = high
        self._bounds = [high] + [ONE_ENCODED] * (dimensions - 1)
        self._state = [low] + [0] * (dimensions - 1)
        self._exhausted = False

    @classmethod
    def aligned(cls, dimensions: int, step: int, low: int, high: int) -> "Odometer":
        """Odometer over ``[low, high)`` positioned where a full-domain scan
        would enter that range.

        The outer digit starts at the first multiple of *step* that is
        ``>= low`` and the inner digits at :func:`sweep_origin`.  A range that
        holds no grid point yields an already exhausted odometer.
        """
        odometer = cls(dimensions, step, low, high)
        sweeps = -(-low // step)
        outer = sweeps * step
        if outer >= high:
            odometer._exhausted = True
        else:
            odometer._state = [outer, *sweep_origin(dimensions, step, sweeps)]
        return odometer

    # ---------------------------------------------------------------- #
    #  Scalar interface                                                #
    # ---------------------------------------------------------------- #

    @property
    def encoded(self) -> tuple[int, ...]:
        """Current position as encoded integers."""
        return tuple(self._state)

    @property
    def coordinate(self) -> tuple[float, ...]:
        """Current position as floats."""
        return tuple(decode(u) for u in self._state)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def advance(self) -> bool:
        """Move to the next coordinate.  Returns *False* once the outer digit overflows."""
        if self._exhausted:
            return False
        for i in range(self.dimensions - 1, -1, -1):
            u = self._state[i] + self.step
            bound = self._bounds[i]
            self._state[i] = u % bound
            if u < bound:
                return True
        self._exhausted = True
        return False

    def __iter__(self) -> Iterator[tuple[float, ...]]:
        while not self._exhausted:
            yield self.coordinate
            self.advance()

    # ---------------------------------------------------------------- #
    #  Vectorised interface                                            #
    # ---------------------------------------------------------------- #

    def blocks(self, block_size: int = 65_536) -> Iterator[NDArray[np.uint32]]:
        """Yield the same sequence as ``iter(self)`` as encoded ``(n, D)`` arrays.

        Each block lies within one sweep of the innermost dimension and holds
        at most *block_size* rows.
        """
        if block_size < 1:
            raise ValueError(f"block_size must be >= 1, got {block_size}")
        inner_bound = self._bounds[-1]
        step = np.uint64(self.step)
        while not self._exhausted:
            start = self._state[-1]
            count = count_points(self.step, start, inner_bound)
            prefix = self._state[:-1]
            for offset in range(0, count, block_size):
                n = min(block_size, count - offset)
                block = np.empty((n, self.dimensions), dtype=np.uint32)
                if prefix:
                    block[:, :-1] = prefix
                inner = np.arange(offset, offset + n, dtype=np.uint64) * step + np.uint64(start)
                block[:, -1] = inner.astype(np.uint32)
                yield block
            # Park on the sweep's last point so advance() performs the wrap + carry.
            self._state[-1] = start + self.step * (count - 1)
            self.advance()
