"""
Unit Tests: Result persistence

Tests:
    - CSV header layout per column mode
    - rows, ordering, sentinel exclusion
    - output directory creation and write failures
    - SQLite run ledger
"""

import numpy as np
import pytest

from constant_discovery.config import SearchConfig
from constant_discovery.errors import ConfigurationError, ResultWriteError
from constant_discovery.scoring.strategies import SENTINEL_SCORE
from constant_discovery.search.bits import encode
from constant_discovery.search.engine import SearchResult
from constant_discovery.search.topk import Candidate
from constant_discovery.store.ledger import RunLedger
from constant_discovery.store.results import (
    CsvResultWriter,
    format_float32,
    header_row,
    read_results,
)

CANDIDATES = [
    Candidate((0.5, 0.25), 0.0),
    Candidate((0.75, float(np.float32(0.1))), 0.125),
]


class TestHeader:
    def test_both(self):
        assert header_row(2, "both") == ["x0", "x1", "x0_encoded", "x1_encoded", "score"]

    def test_raw(self):
        assert header_row(3, "raw") == ["x0", "x1", "x2", "score"]

    def test_encoded(self):
        assert header_row(1, "encoded") == ["x0_encoded", "score"]

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            header_row(1, "json")


class TestFormat:
    def test_float32_roundtrip(self):
        x = float(np.float32(0.1))
        assert float(np.float32(format_float32(x))) == x
        assert format_float32(0.5) == "0.5"


class TestCsvResultWriter:
    def test_writes_rows(self, tmp_path):
        writer = CsvResultWriter(tmp_path / "out", name="pair", columns="both")
        path = writer.write(CANDIDATES, dimensions=2)

        assert path == tmp_path / "out" / "pair.csv"
        rows = read_results(path)
        assert len(rows) == 2
        assert rows[0]["x0"] == "0.5"
        assert rows[0]["x1"] == "0.25"
        assert rows[0]["x0_encoded"] == str(encode(0.5))
        assert rows[0]["score"] == "0.0"
        assert float(rows[1]["score"]) == 0.125
        assert int(rows[1]["x1_encoded"]) == encode(float(np.float32(0.1)))

    def test_header_only_when_empty(self, tmp_path):
        path = CsvResultWriter(tmp_path, name="empty", columns="raw").write([], dimensions=1)
        assert path.read_text().splitlines() == ["x0,score"]

    def test_sentinel_rows_skipped(self, tmp_path):
        rows = CANDIDATES + [Candidate((0.0, 0.0), SENTINEL_SCORE)]
        path = CsvResultWriter(tmp_path, name="s").write(rows, dimensions=2)
        assert len(read_results(path)) == 2

    def test_creates_nested_output_dir(self, tmp_path):
        target = tmp_path / "a" / "b"
        CsvResultWriter(target, name="x").write(CANDIDATES, dimensions=2)
        assert (target / "x.csv").exists()

    def test_output_dir_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        writer = CsvResultWriter(blocker / "out", name="x")
        with pytest.raises(ResultWriteError):
            writer.write(CANDIDATES, dimensions=2)

    def test_result_path_is_a_directory(self, tmp_path):
        (tmp_path / "x.csv").mkdir()
        with pytest.raises(ResultWriteError):
            CsvResultWriter(tmp_path, name="x").write(CANDIDATES, dimensions=2)

    def test_result_write_error_is_os_error(self):
        assert issubclass(ResultWriteError, OSError)

    def test_rejects_unknown_columns(self, tmp_path):
        with pytest.raises(ConfigurationError):
            CsvResultWriter(tmp_path, columns="xml")


class TestRunLedger:
    def _result(self, candidates):
        return SearchResult(
            config=SearchConfig(),
            workers=2,
            partitions=[],
            candidates=candidates,
            points_scanned=1234,
            elapsed_s=0.5,
        )

    def test_record_and_top_n(self, tmp_path):
        with RunLedger(tmp_path / "ledger" / "runs.sqlite") as ledger:
            first = ledger.record(self._result(CANDIDATES), "pair")
            second = ledger.record(self._result([Candidate((0.3, 0.6), 0.0625)]), "pair")
            ledger.record(self._result([Candidate((0.9, 0.9), 0.01)]), "other")

            assert second == first + 1
            top = ledger.top_n("pair", n=2)
            assert [row["score"] for row in top] == [0.0, 0.0625]
            assert top[0]["coordinate"] == (0.5, 0.25)
            assert top[0]["encoded"] == (encode(0.5), encode(0.25))
            assert top[1]["run_id"] == second

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(ResultWriteError):
            RunLedger(blocker / "runs.sqlite")
