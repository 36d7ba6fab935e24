"""
Integration Tests: SearchEngine

Tests:
    - end-to-end midpoint search, single worker and four workers
    - identical best-K scores across worker counts
    - state machine and one-shot runs
    - configuration errors abort before scanning
    - progress and result sink collaborators
"""

from dataclasses import replace

import numpy as np
import pytest

from constant_discovery.config import PRESETS, SearchConfig
from constant_discovery.errors import ConfigurationError, SearchError
from constant_discovery.scoring.strategies import SENTINEL_SCORE, get_score_function
from constant_discovery.search.bits import ONE_ENCODED, encode
from constant_discovery.search.engine import (
    EngineState,
    SearchEngine,
    run_search,
    scan_partition,
)
from constant_discovery.search.partition import Partition


class RecordingProgress:
    def __init__(self):
        self.updates = []

    def report(self, count, total):
        self.updates.append((count, total))
        return True


class RecordingSink:
    def __init__(self):
        self.calls = []

    def write(self, candidates, dimensions):
        self.calls.append((list(candidates), dimensions))
        return None


def _midpoint(workers, keep=1, step=2**16):
    return SearchConfig(dimensions=1, step=step, keep=keep, strategy="midpoint", workers=workers)


class TestMidpointScenario:
    """D = 1, score = |x - 0.5|."""

    def test_single_worker_finds_midpoint(self):
        result = run_search(_midpoint(workers=1))
        assert result.best.coordinate == (0.5,)
        assert result.best.score == 0.0
        assert result.points_scanned == ONE_ENCODED // 2**16
        assert result.workers == 1

    def test_four_workers_agree(self):
        single = run_search(_midpoint(workers=1))
        parallel = run_search(_midpoint(workers=4))
        assert parallel.workers == 4
        assert len(parallel.partitions) == 4
        assert parallel.candidates == single.candidates
        assert parallel.points_scanned == single.points_scanned

    def test_keep_three_neighbours(self):
        result = run_search(_midpoint(workers=1, keep=3))
        assert [c.coordinate for c in result.candidates] == [
            (0.5,),
            (0.5 - 2.0 ** -9,),
            # Tied with 0.5 + 2**-8; the first one enumerated is kept.
            (0.5 - 2.0 ** -8,),
        ]
        scores = [c.score for c in result.candidates]
        assert scores == sorted(scores)


class TestDeterminism:
    @pytest.mark.parametrize("workers", [2, 4])
    def test_coirrational_best_scores_match(self, workers):
        # 2**21 divides the encoded domain and every partition boundary, so the
        # lattice is the same for every worker count.
        base = SearchConfig(dimensions=2, step=2**21, keep=5, strategy="coirrational", workers=1)
        single = run_search(base)
        parallel = run_search(replace(base, workers=workers))
        assert [c.score for c in parallel.candidates] == [c.score for c in single.candidates]
        assert parallel.points_scanned == single.points_scanned == 508 * 508

    @pytest.mark.parametrize("workers", [3, 6])
    def test_off_grid_boundaries_midpoint(self, workers):
        # 1000 divides neither the encoded domain nor the partition boundaries.
        base = _midpoint(workers=1, keep=3, step=1000)
        single = run_search(base)
        parallel = run_search(replace(base, workers=workers))
        assert [c.score for c in parallel.candidates] == [c.score for c in single.candidates]
        assert parallel.candidates == single.candidates
        assert parallel.points_scanned == single.points_scanned == -(-ONE_ENCODED // 1000)

    @pytest.mark.parametrize("workers", [3, 7])
    def test_off_grid_boundaries_coirrational(self, workers):
        base = SearchConfig(dimensions=2, step=3_000_000, keep=5, strategy="coirrational", workers=1)
        single = run_search(base)
        parallel = run_search(replace(base, workers=workers))
        assert [c.score for c in parallel.candidates] == [c.score for c in single.candidates]
        assert parallel.points_scanned == single.points_scanned

    def test_partition_without_grid_point(self):
        # Four grid points on the outer axis shared among eight partitions.
        base = _midpoint(workers=1, keep=4, step=2**28)
        single = run_search(base)
        parallel = run_search(replace(base, workers=8))
        assert single.points_scanned == parallel.points_scanned == 4
        assert [c.score for c in parallel.candidates] == [c.score for c in single.candidates]

    def test_sentinel_never_reported(self):
        cfg = SearchConfig(dimensions=2, step=2**22, keep=5, strategy="coirrational", workers=1)
        result = run_search(cfg)
        assert len(result.candidates) == 5
        assert all(c.score < SENTINEL_SCORE for c in result.candidates)
        assert all(min(c.coordinate) >= np.float32(0.0001) for c in result.candidates)

    def test_product_3d(self):
        cfg = SearchConfig(dimensions=3, step=2**23, keep=4, strategy="product", workers=1)
        result = run_search(cfg)
        assert result.points_scanned == 127**3
        scores = [c.score for c in result.candidates]
        assert scores == sorted(scores)
        fn = get_score_function("product")
        for c in result.candidates:
            assert fn.score(c.coordinate) == c.score


class TestStateMachine:
    def test_states(self):
        engine = SearchEngine(_midpoint(workers=1, step=2**20))
        assert engine.state is EngineState.CONFIGURING
        engine.run()
        assert engine.state is EngineState.DONE

    def test_runs_once(self):
        engine = SearchEngine(_midpoint(workers=1, step=2**20))
        engine.run()
        with pytest.raises(SearchError):
            engine.run()

    @pytest.mark.parametrize(
        "overrides",
        [
            dict(step=0),
            dict(keep=0),
            dict(dimensions=0),
            dict(dimensions=2),
            dict(workers=0),
            dict(block_size=0),
            dict(strategy="unknown"),
        ],
    )
    def test_configuration_errors(self, overrides):
        cfg = replace(_midpoint(workers=1), **overrides)
        sink = RecordingSink()
        engine = SearchEngine(cfg, result_sink=sink)
        with pytest.raises(ConfigurationError):
            engine.run()
        assert engine.state is EngineState.CONFIGURING
        assert sink.calls == []


class TestCollaborators:
    def test_progress_single_writer_and_final(self):
        progress = RecordingProgress()
        run_search(_midpoint(workers=1, step=2**20), progress=progress)
        assert progress.updates[-1] == (1, 1)
        assert progress.updates.count((1, 1)) == 1
        assert all(count < total for count, total in progress.updates[:-1])

    def test_result_sink_receives_sorted_candidates(self):
        sink = RecordingSink()
        result = run_search(_midpoint(workers=1, keep=3), result_sink=sink)
        assert len(sink.calls) == 1
        candidates, dimensions = sink.calls[0]
        assert dimensions == 1
        assert candidates == result.candidates


class TestScanPartition:
    def test_scans_only_its_range(self):
        cfg = _midpoint(workers=2, keep=2, step=2**20)
        low, high = encode(0.25), encode(0.5)
        report = scan_partition(cfg, get_score_function("midpoint"), Partition(1, low, high))
        assert report.points_scanned == (high - low) // 2**20
        for c in report.tracker.results():
            assert low <= c.encoded[0] < high
        # 0.5 itself is excluded; the closest point lies just below it.
        assert report.tracker.results()[0].coordinate[0] < 0.5

    def test_progress_reports_partition_fraction(self):
        cfg = SearchConfig(dimensions=1, step=2**16, keep=1, strategy="midpoint", block_size=1024)
        progress = RecordingProgress()
        scan_partition(cfg, get_score_function("midpoint"), Partition(0, 0, ONE_ENCODED), progress)
        counts = [c for c, _ in progress.updates]
        assert counts == sorted(counts)
        assert all(total == 10_000 for _, total in progress.updates)
        assert counts[-1] < 10_000


class TestPresets:
    def test_presets_are_valid(self):
        for name, cfg in PRESETS.items():
            cfg.validate()
            assert get_score_function(cfg.strategy).dimensions == cfg.dimensions, name

    def test_resolved_workers_default(self):
        assert SearchConfig(workers=None).resolved_workers() >= 1
        assert SearchConfig(workers=3).resolved_workers() == 3
