"""
search/bits.py — Bit-ordered float32 coordinates.

A non-negative finite float32 can be reinterpreted as a uint32 without losing
its ordering: for ``0 <= a < b`` the bit patterns satisfy ``bits(a) < bits(b)``.
The search enumerates that integer axis instead of the floats themselves,
which makes a step of ``n`` representable values a single integer addition.

Domain
------
All conversions here are restricted to ``[0.0, 1.0]``.  Negative values, NaN
and infinities do not preserve the ordering and are rejected with
``ValueError`` rather than silently reinterpreted.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

# Bit patterns of the domain end points.
ZERO_ENCODED = 0
ONE_ENCODED = int(np.array(1.0, dtype=np.float32).view(np.uint32))  # 0x3F800000


def encode(value: float) -> int:
    """Return the float32 bit pattern of *value* as an unsigned integer.

    Raises ``ValueError`` if *value* is outside ``[0, 1]`` or not finite.
    Values are first rounded to the nearest float32.
    """
    if not math.isfinite(value) or value < 0.0 or value > 1.0:
        raise ValueError(f"value must be a finite float in [0, 1], got {value!r}")
    # Collapse -0.0 onto +0.0; its sign bit would otherwise sort it last.
    value = float(value) + 0.0
    return int(np.array(value, dtype=np.float32).view(np.uint32))


def decode(encoded: int) -> float:
    """Inverse of :func:`encode`."""
    if encoded < ZERO_ENCODED or encoded > ONE_ENCODED:
        raise ValueError(
            f"encoded value must be in [0, {ONE_ENCODED:#x}], got {encoded!r}"
        )
    return float(np.array(encoded, dtype=np.uint32).view(np.float32))


def advance(value: float, step_count: int, bound: float) -> tuple[float, bool]:
    """Step *value* forward by *step_count* representable float32 values.

    The sum wraps modulo ``encode(bound)``.  The returned flag is *False*
    when the unwrapped sum reached the bound, i.e. the caller must carry
    into the next dimension.
    """
    bound_u = encode(bound)
    if bound_u == 0:
        raise ValueError("bound must be greater than zero")
    u = encode(value) + step_count
    return decode(u % bound_u), u < bound_u


def encode_array(values: NDArray[np.floating]) -> NDArray[np.uint32]:
    """Vectorised :func:`encode`; returns a new ``uint32`` array."""
    arr = np.asarray(values, dtype=np.float32)
    if not np.all(np.isfinite(arr)) or np.any(arr < 0.0) or np.any(arr > 1.0):
        raise ValueError("all values must be finite floats in [0, 1]")
    return (arr + np.float32(0.0)).view(np.uint32)


def decode_array(encoded: NDArray[np.integer]) -> NDArray[np.float32]:
    """Vectorised :func:`decode`.  ``uint32`` input is reinterpreted without a copy."""
    arr = np.ascontiguousarray(encoded, dtype=np.uint32)
    if arr.size and int(arr.max()) > ONE_ENCODED:
        raise ValueError(f"encoded values must not exceed {ONE_ENCODED:#x}")
    return arr.view(np.float32)
