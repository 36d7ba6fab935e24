"""store/ledger.py — Lightweight run ledger backed by SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..errors import ResultWriteError
from ..search.engine import SearchResult

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL,
    strategy    TEXT    NOT NULL,
    dimensions  INTEGER NOT NULL,
    step        INTEGER NOT NULL,
    keep        INTEGER NOT NULL,
    workers     INTEGER NOT NULL,
    points      INTEGER NOT NULL,
    elapsed_s   REAL,
    created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS candidates (
    run_id      INTEGER NOT NULL REFERENCES runs(id),
    rank        INTEGER NOT NULL,
    coordinate  TEXT    NOT NULL,
    encoded     TEXT    NOT NULL,
    score       REAL    NOT NULL
);
"""


class RunLedger:
    def __init__(self, db_path: str | Path = "runs.sqlite") -> None:
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path))
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise ResultWriteError(f"cannot open run ledger {db_path}: {exc}") from exc
        logger.info("Run ledger opened at %s", db_path)

    def record(self, result: SearchResult, name: str) -> int:
        """Store *result* under *name*; returns the new run id."""
        cfg = result.config
        try:
            cur = self._conn.execute(
                "INSERT INTO runs "
                "(name, strategy, dimensions, step, keep, workers, points, elapsed_s) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    name,
                    cfg.strategy,
                    cfg.dimensions,
                    cfg.step,
                    cfg.keep,
                    result.workers,
                    result.points_scanned,
                    result.elapsed_s,
                ),
            )
            run_id = int(cur.lastrowid)
            self._conn.executemany(
                "INSERT INTO candidates (run_id, rank, coordinate, encoded, score) "
                "VALUES (?, ?, ?, ?, ?)",
                [
                    (
                        run_id,
                        rank,
                        json.dumps(list(c.coordinate)),
                        json.dumps(list(c.encoded)),
                        c.score,
                    )
                    for rank, c in enumerate(result.candidates, 1)
                ],
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise ResultWriteError(f"cannot record run {name!r}: {exc}") from exc
        logger.info("Run %d recorded in ledger  (%s, %d candidates)", run_id, name, len(result.candidates))
        return run_id

    def top_n(self, name: str, n: int = 10) -> list[dict[str, Any]]:
        """Best candidates ever recorded under *name*, lowest score first."""
        cur = self._conn.execute(
            "SELECT c.coordinate, c.encoded, c.score, r.id AS run_id, r.step "
            "FROM candidates c JOIN runs r ON r.id = c.run_id "
            "WHERE r.name = ? ORDER BY c.score ASC LIMIT ?",
            (name, n),
        )
        cols = [d[0] for d in cur.description]
        rows = [dict(zip(cols, row)) for row in cur.fetchall()]
        for row in rows:
            row["coordinate"] = tuple(json.loads(row["coordinate"]))
            row["encoded"] = tuple(json.loads(row["encoded"]))
        return rows

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "RunLedger":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()
