"""
scoring/strategies.py — Pluggable score functions (lower is better).

Every strategy maps a batch of float32 coordinates of shape ``(n, D)`` to
``n`` float32 scores.  Coordinates where a strategy is undefined score
``SENTINEL_SCORE`` and are never ranked.

Strategies must be stateless so they can be pickled into worker processes
and evaluated in any order.  New ones are added with
:func:`register_score_function`; the engine looks them up by name.
"""

from __future__ import annotations

from typing import Sequence, TypeVar

import numpy as np
from numpy.typing import NDArray

from ..errors import ConfigurationError

SENTINEL_SCORE = float(np.finfo(np.float32).max)

GOLDEN_RATIO_CONJUGATE = np.float32(0.618033988749894)

# Below this a coordinate is too close to zero to be used as a divisor.
_MIN_DIVISOR = np.float32(0.0001)


def fract(t: NDArray[np.float32]) -> NDArray[np.float32]:
    """Fractional part, ``t - floor(t)``."""
    return t - np.floor(t)


def _sanitize(scores: NDArray[np.float32]) -> NDArray[np.float32]:
    scores = np.asarray(scores, dtype=np.float32)
    scores[~np.isfinite(scores)] = SENTINEL_SCORE
    return scores


class ScoreFunction:
    """Base class for a scoring strategy.

    Subclasses set :attr:`name` and :attr:`dimensions` and implement
    :meth:`_evaluate`.
    """

    name: str = ""
    dimensions: int = 0
    description: str = ""

    def _evaluate(self, points: NDArray[np.float32]) -> NDArray[np.float32]:
        raise NotImplementedError

    def score_batch(self, points: NDArray[np.float32]) -> NDArray[np.float32]:
        """Score every row of *points*; non-finite results become the sentinel."""
        points = np.asarray(points, dtype=np.float32)
        if points.ndim != 2 or points.shape[1] != self.dimensions:
            raise ValueError(
                f"{self.name} expects points of shape (n, {self.dimensions}), "
                f"got {points.shape}"
            )
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            return _sanitize(self._evaluate(points))

    def score(self, coordinate: Sequence[float]) -> float:
        """Score a single coordinate."""
        return float(self.score_batch(np.asarray([coordinate], dtype=np.float32))[0])

    def __call__(self, coordinate: Sequence[float]) -> float:
        return self.score(coordinate)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, dimensions={self.dimensions})"


# ------------------------------------------------------------------ #
#  Registry                                                           #
# ------------------------------------------------------------------ #

SCORE_FUNCTIONS: dict[str, type[ScoreFunction]] = {}

_S = TypeVar("_S", bound=type[ScoreFunction])


def register_score_function(cls: _S) -> _S:
    """Class decorator adding a strategy to :data:`SCORE_FUNCTIONS`."""
    if not cls.name:
        raise ValueError(f"{cls.__name__} must define a non-empty name")
    if cls.dimensions < 1:
        raise ValueError(f"{cls.__name__} must define dimensions >= 1")
    if cls.name in SCORE_FUNCTIONS and SCORE_FUNCTIONS[cls.name] is not cls:
        raise ValueError(f"score function {cls.name!r} is already registered")
    SCORE_FUNCTIONS[cls.name] = cls
    return cls


def get_score_function(name: str) -> ScoreFunction:
    """Instantiate the registered strategy called *name*."""
    try:
        return SCORE_FUNCTIONS[name]()
    except KeyError:
        raise ConfigurationError(
            f"unknown score function {name!r}; choose from {sorted(SCORE_FUNCTIONS)}"
        ) from None


# ------------------------------------------------------------------ #
#  Built-in strategies                                                #
# ------------------------------------------------------------------ #

@register_score_function
class MidpointDistance(ScoreFunction):
    """1-D sanity check: distance from 0.5."""

    name = "midpoint"
    dimensions = 1
    description = "|x0 - 0.5|"

    def _evaluate(self, points: NDArray[np.float32]) -> NDArray[np.float32]:
        return np.abs(points[:, 0] - np.float32(0.5))


@register_score_function
class CoirrationalPair(ScoreFunction):
    """Two values maximally irrational to each other and to the golden ratio.

    Four error terms measure how far the fractional part of a ratio sits from
    the golden-ratio conjugate.  Squaring before summing spreads the error
    across the terms instead of letting one of them carry all of it.
    """

    name = "coirrational"
    dimensions = 2
    description = "sqrt(sum of squared fract-ratio errors vs. golden ratio conjugate)"

    def _evaluate(self, points: NDArray[np.float32]) -> NDArray[np.float32]:
        x0 = points[:, 0]
        x1 = points[:, 1]
        g = GOLDEN_RATIO_CONJUGATE

        error1 = np.abs(fract(x0 / x1) - g)
        error2 = np.abs(fract(x1 / x0) - g)
        error3 = np.abs(fract(x0 / g) - g)
        error4 = np.abs(fract(x1 / g) - g)

        scores = np.sqrt(
            error1 * error1 + error2 * error2 + error3 * error3 + error4 * error4
        )
        scores[(x0 < _MIN_DIVISOR) | (x1 < _MIN_DIVISOR)] = SENTINEL_SCORE
        return scores


@register_score_function
class ProductFraction(ScoreFunction):
    """3-D: fractional part of the product close to 0.618."""

    name = "product"
    dimensions = 3
    description = "|fract(x0 * x1 * x2) - 0.618|"

    def _evaluate(self, points: NDArray[np.float32]) -> NDArray[np.float32]:
        product = points[:, 0] * points[:, 1] * points[:, 2]
        return np.abs(fract(product) - np.float32(0.618))


def available_score_functions() -> list[str]:
    return sorted(SCORE_FUNCTIONS)
