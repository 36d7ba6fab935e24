"""
search/topk.py — Bounded retention of the K lowest-scoring candidates.

Design notes
------------
* **Replace-worst** — the tracker keeps K fixed slots, all starting at the
  sentinel score, plus the index of the slot holding the worst (largest)
  score.  A new observation is accepted only if it is *strictly* better than
  that worst slot; it overwrites the slot and the K slots are rescanned for
  the new worst.  The rescan is O(K) and only happens on an actual
  improvement, which gets rare as the set converges.
* **Ties** — an observation equal to the current worst is rejected, so among
  equal scores at the boundary the first one encountered stays.  When the
  held set itself contains several slots tied for worst, which of them is
  evicted next depends on slot position.  The retained *scores* are always
  the K smallest seen; the identity of tied survivors is not guaranteed and
  can differ between runs with different worker counts.
* **Merge** — merging feeds the other tracker's live candidates through the
  same ``observe`` rule, so per-worker trackers combine into the same score
  set as a single-threaded scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from ..errors import ConfigurationError
from ..scoring.strategies import SENTINEL_SCORE
from .bits import decode, encode


@dataclass(frozen=True)
class Candidate:
    """A scored coordinate."""

    coordinate: tuple[float, ...]
    score: float

    @property
    def encoded(self) -> tuple[int, ...]:
        return tuple(encode(x) for x in self.coordinate)

    @classmethod
    def from_encoded(cls, encoded: Sequence[int], score: float) -> "Candidate":
        return cls(tuple(decode(int(u)) for u in encoded), float(score))


class TopKTracker:
    """Online K-best (lowest score) retention in O(K) space.

    Parameters
    ----------
    keep:
        Number of candidates to retain (K >= 1).
    """

    def __init__(self, keep: int) -> None:
        if keep < 1:
            raise ConfigurationError(f"keep must be >= 1, got {keep}")
        self.keep = keep
        self._slots: list[Candidate | None] = [None] * keep
        self._scores: list[float] = [SENTINEL_SCORE] * keep
        self._worst = 0

    @property
    def worst_score(self) -> float:
        """Score a new observation has to beat to be retained."""
        return self._scores[self._worst]

    def __len__(self) -> int:
        return sum(1 for s in self._scores if s < SENTINEL_SCORE)

    # ---------------------------------------------------------------- #
    #  Observe                                                         #
    # ---------------------------------------------------------------- #

    def observe(self, coordinate: Sequence[float], score: float) -> bool:
        """Offer one candidate.  Returns *True* if it was retained."""
        score = float(score)
        if not score < self._scores[self._worst]:
            return False

        candidate = Candidate(tuple(float(x) for x in coordinate), score)
        if self.keep == 1:
            self._slots[0] = candidate
            self._scores[0] = score
            return True

        self._slots[self._worst] = candidate
        self._scores[self._worst] = score
        worst = 0
        for i in range(1, self.keep):
            if self._scores[i] > self._scores[worst]:
                worst = i
        self._worst = worst
        return True

    def observe_batch(
        self,
        encoded: NDArray[np.uint32],
        scores: NDArray[np.float32],
    ) -> int:
        """Offer a block of encoded points in enumeration order.

        Rows that cannot end up in the retained set are discarded with numpy
        before the per-row :meth:`observe` loop.  Returns the number of rows
        that were retained at the time they were offered.

        The retained scores always equal those of calling :meth:`observe` row
        by row.  The retained candidates can differ when scores tie: the
        prefilter drops rows that the row-by-row path would accept and later
        evict, and those transient accepts move the worst slot, so a
        different tied slot may be evicted next.
        """
        scores = np.asarray(scores)
        if scores.size == 0:
            return 0

        if self.keep == 1:
            # argmin returns the first occurrence, matching strict-less-than order.
            i = int(np.argmin(scores))
            if scores[i] < self._scores[0]:
                self._accept_encoded(encoded[i], scores[i])
                return 1
            return 0

        idx = np.flatnonzero(scores < self.worst_score)
        if idx.size > self.keep:
            kth = np.partition(scores[idx], self.keep - 1)[self.keep - 1]
            idx = idx[scores[idx] <= kth]

        accepted = 0
        for i in idx:
            if scores[i] < self._scores[self._worst]:
                self._accept_encoded(encoded[i], scores[i])
                accepted += 1
        return accepted

    def _accept_encoded(self, row: NDArray[np.uint32], score: np.floating) -> None:
        candidate = Candidate.from_encoded(row, float(score))
        self.observe(candidate.coordinate, candidate.score)

    # ---------------------------------------------------------------- #
    #  Merge / results                                                 #
    # ---------------------------------------------------------------- #

    def merge(self, other: "TopKTracker") -> None:
        """Feed every live candidate of *other* through :meth:`observe`."""
        for candidate in other._slots:
            if candidate is not None and candidate.score < SENTINEL_SCORE:
                self.observe(candidate.coordinate, candidate.score)

    def results(self) -> list[Candidate]:
        """Live candidates sorted by ascending score (stable for ties)."""
        live = [c for c in self._slots if c is not None and c.score < SENTINEL_SCORE]
        return sorted(live, key=lambda c: c.score)

    def __repr__(self) -> str:
        return f"TopKTracker(keep={self.keep}, live={len(self)}, worst={self.worst_score:.6g})"
