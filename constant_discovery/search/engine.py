"""
search/engine.py — Exhaustive parallel search driver.

The engine runs one search from start to finish:

    CONFIGURING → PARTITIONING → SCANNING → AGGREGATING → DONE

* **Configuring** — validate the frozen :class:`SearchConfig` and resolve the
  worker count and score function.
* **Partitioning** — tile the outer dimension's encoded axis, one contiguous
  range per worker.
* **Scanning** — every worker walks its range with its own odometer and
  tracker.  Nothing is shared between workers, so the hot loop takes no
  locks.  A single worker runs in-process; more run in a
  ``ProcessPoolExecutor`` and are joined once.
* **Aggregating** — per-worker trackers are merged through the same
  retention rule into one global tracker.
* **Done** — the sorted winners go to the result sink and the progress sink
  gets its single 100 % update.

Transitions only move forward; there is no retry or cancellation path.
Only the worker owning partition 0 reports progress.

Determinism
-----------
Every worker enters the step grid exactly where a single full-domain scan
would (see :meth:`.Odometer.aligned`), so the partitions together visit the
same points in the same order for any worker count, and scoring is pure.  The
set of best scores is therefore independent of the worker count and of
scheduling.  With ties at the retention boundary, *which* tied candidate
survives may still depend on the worker count (see :mod:`.topk`).
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Protocol, Sequence

from ..config import SearchConfig
from ..errors import SearchError
from ..progress import NullProgress, ProgressSink
from ..scoring.strategies import ScoreFunction
from .bits import ONE_ENCODED, decode_array
from .odometer import Odometer
from .partition import Partition, partition_domain
from .topk import Candidate, TopKTracker

logger = logging.getLogger(__name__)

# Worker 0 reports progress in units of 1/10000 of its partition.
_PROGRESS_RESOLUTION = 10_000


class EngineState(Enum):
    CONFIGURING = auto()
    PARTITIONING = auto()
    SCANNING = auto()
    AGGREGATING = auto()
    DONE = auto()


class ResultSink(Protocol):
    """Receives the final sorted candidates."""

    def write(self, candidates: Sequence[Candidate], dimensions: int) -> Path | None:
        ...


@dataclass
class WorkerReport:
    """What a worker hands back at the join barrier."""

    partition: Partition
    tracker: TopKTracker
    points_scanned: int
    elapsed_s: float


@dataclass
class SearchResult:
    """Outcome of one completed run."""

    config: SearchConfig
    workers: int
    partitions: list[Partition]
    candidates: list[Candidate]
    points_scanned: int
    elapsed_s: float
    output_path: Path | None = None

    @property
    def best(self) -> Candidate | None:
        return self.candidates[0] if self.candidates else None


# ------------------------------------------------------------------ #
#  Worker                                                             #
# ------------------------------------------------------------------ #

def scan_partition(
    config: SearchConfig,
    score_fn: ScoreFunction,
    partition: Partition,
    progress: ProgressSink | None = None,
) -> WorkerReport:
    """Score every point of *partition* and keep the best ``config.keep``.

    Module-level so it can be pickled into a worker process.
    """
    start = time.perf_counter()
    tracker = TopKTracker(config.keep)
    odometer = Odometer.aligned(config.dimensions, config.step, partition.low, partition.high)
    span = len(partition)
    points = 0

    for block in odometer.blocks(config.block_size):
        scores = score_fn.score_batch(decode_array(block))
        tracker.observe_batch(block, scores)
        points += len(block)
        if progress is not None:
            done = int(block[-1, 0]) - partition.low
            progress.report(done * _PROGRESS_RESOLUTION // span, _PROGRESS_RESOLUTION)

    return WorkerReport(
        partition=partition,
        tracker=tracker,
        points_scanned=points,
        elapsed_s=time.perf_counter() - start,
    )


# ------------------------------------------------------------------ #
#  Engine                                                             #
# ------------------------------------------------------------------ #

class SearchEngine:
    """One-shot orchestrator for an exhaustive search.

    Parameters
    ----------
    config:
        Frozen search description.
    progress:
        Sink for progress updates; defaults to :class:`NullProgress`.
    result_sink:
        Optional persistence target for the final candidates.
    """

    def __init__(
        self,
        config: SearchConfig,
        progress: ProgressSink | None = None,
        result_sink: ResultSink | None = None,
    ) -> None:
        self.config = config
        self.progress: ProgressSink = progress if progress is not None else NullProgress()
        self.result_sink = result_sink
        self._state = EngineState.CONFIGURING
        self._started = False

    @property
    def state(self) -> EngineState:
        return self._state

    def _enter(self, state: EngineState) -> None:
        if state.value <= self._state.value:
            raise SearchError(f"illegal transition {self._state.name} → {state.name}")
        logger.debug("Engine state: %s → %s", self._state.name, state.name)
        self._state = state

    # ---------------------------------------------------------------- #
    #  Run                                                             #
    # ---------------------------------------------------------------- #

    def run(self) -> SearchResult:
        """Execute the full search and return its result."""
        if self._started:
            raise SearchError("a SearchEngine can only run once")
        self._started = True
        run_start = time.perf_counter()

        # ── Configuring ──
        cfg = self.config
        cfg.validate()
        score_fn = cfg.score_function()
        workers = min(cfg.resolved_workers(), ONE_ENCODED)
        logger.info(
            "Search start  strategy=%s  D=%d  step=%d  keep=%d  workers=%d",
            cfg.strategy, cfg.dimensions, cfg.step, cfg.keep, workers,
        )

        # ── Partitioning ──
        self._enter(EngineState.PARTITIONING)
        partitions = partition_domain(0, ONE_ENCODED, workers)
        for p in partitions:
            logger.debug("  partition %d: [%#x, %#x)  (%d values)", p.index, p.low, p.high, len(p))

        # ── Scanning ──
        self._enter(EngineState.SCANNING)
        reports = self._scan(cfg, score_fn, partitions)

        # ── Aggregating ──
        self._enter(EngineState.AGGREGATING)
        final = TopKTracker(cfg.keep)
        for report in reports:
            logger.info(
                "Worker %d done  %d points  %.1f s  best=%s",
                report.partition.index,
                report.points_scanned,
                report.elapsed_s,
                f"{report.tracker.results()[0].score:.6g}" if len(report.tracker) else "n/a",
            )
            final.merge(report.tracker)
        candidates = final.results()

        # ── Done ──
        self._enter(EngineState.DONE)
        output_path = None
        if self.result_sink is not None:
            output_path = self.result_sink.write(candidates, cfg.dimensions)
        self.progress.report(1, 1)

        result = SearchResult(
            config=cfg,
            workers=workers,
            partitions=partitions,
            candidates=candidates,
            points_scanned=sum(r.points_scanned for r in reports),
            elapsed_s=time.perf_counter() - run_start,
            output_path=output_path,
        )
        logger.info(
            "Search complete  %d points  %.1f s  %d candidates",
            result.points_scanned, result.elapsed_s, len(candidates),
        )
        return result

    def _scan(
        self,
        cfg: SearchConfig,
        score_fn: ScoreFunction,
        partitions: list[Partition],
    ) -> list[WorkerReport]:
        if len(partitions) == 1:
            return [scan_partition(cfg, score_fn, partitions[0], self.progress)]

        with ProcessPoolExecutor(max_workers=len(partitions)) as executor:
            futures = [
                executor.submit(
                    scan_partition,
                    cfg,
                    score_fn,
                    p,
                    self.progress if p.index == 0 else None,
                )
                for p in partitions
            ]
            # Join barrier: the first worker exception aborts the run.
            return [f.result() for f in futures]


def run_search(
    config: SearchConfig,
    progress: ProgressSink | None = None,
    result_sink: ResultSink | None = None,
) -> SearchResult:
    """Convenience wrapper: build a :class:`SearchEngine` and run it."""
    return SearchEngine(config, progress=progress, result_sink=result_sink).run()
