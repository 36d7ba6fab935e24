"""
main.py — Exhaustive constant search: command-line entry point.

Usage
-----
    python -m constant_discovery.main \
        --preset coirrational \
        --step 16384 \
        --keep 5 \
        --workers 8 \
        --output-dir out

The run:
    1. Resolve the preset and command-line overrides into a frozen config.
    2. Make sure the output directory exists.
    3. Split the outer dimension across workers and scan every point.
    4. Merge the per-worker winners and write ``<output-dir>/<name>.csv``.
    5. Optionally append the run to a SQLite ledger.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import COLUMN_MODES, PRESETS, OutputConfig, RunConfig, SearchConfig
from .errors import ConfigurationError, ResultWriteError
from .progress import ConsoleProgress, NullProgress
from .scoring.strategies import available_score_functions, get_score_function
from .search.engine import SearchEngine, SearchResult
from .store.ledger import RunLedger
from .store.results import CsvResultWriter, format_float32

logger = logging.getLogger("constant_discovery")

LOG_FILENAME = "constant_discovery.log"


def run_discovery(cfg: RunConfig) -> SearchResult:
    """Run one search, persist its winners and return the result."""
    cfg.output.validate()
    writer = CsvResultWriter(
        output_dir=cfg.output.output_dir,
        name=cfg.output.name,
        columns=cfg.output.columns,
    )
    writer.ensure_output_dir()

    progress = ConsoleProgress() if cfg.show_progress else NullProgress()
    logger.info(
        "═══ SEARCH START ═══  %s  strategy=%s  D=%d  step=%d  keep=%d",
        cfg.output.name, cfg.search.strategy, cfg.search.dimensions,
        cfg.search.step, cfg.search.keep,
    )
    result = SearchEngine(cfg.search, progress=progress, result_sink=writer).run()

    logger.info("═══ TOP %d CANDIDATES ═══", len(result.candidates))
    for rank, c in enumerate(result.candidates, 1):
        logger.info(
            "  #%d  x=%s  encoded=%s  score=%s",
            rank,
            [format_float32(x) for x in c.coordinate],
            list(c.encoded),
            format_float32(c.score),
        )

    if cfg.output.ledger_path is not None:
        with RunLedger(cfg.output.ledger_path) as ledger:
            ledger.record(result, cfg.output.name)

    return result


# ── CLI ────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="constant-discovery",
        description="Exhaustive bit-ordered float search for numerical constants",
    )
    parser.add_argument("--preset", default=None, choices=sorted(PRESETS),
                        help="Start from a named configuration (default: coirrational)")
    parser.add_argument("--strategy", default=None, choices=available_score_functions())
    parser.add_argument("--dimensions", type=int, default=None,
                        help="Coordinate count; defaults to the strategy's own")
    parser.add_argument("--step", type=int, default=None, help="Encoded stride per dimension")
    parser.add_argument("--keep", type=int, default=None, help="Number of winners to retain")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker processes (default: CPU count)")
    parser.add_argument("--block-size", type=int, default=None)
    parser.add_argument("--output-dir", type=Path, default=Path("out"))
    parser.add_argument("--name", default=None, help="Result file base name")
    parser.add_argument("--columns", default="both", choices=COLUMN_MODES)
    parser.add_argument("--ledger", type=Path, default=None, help="SQLite run ledger path")
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    """Merge the preset with explicit command-line overrides."""
    preset_name = args.preset
    if preset_name is None and args.strategy is None:
        preset_name = "coirrational"

    if preset_name is not None:
        search = PRESETS[preset_name]
    else:
        search = SearchConfig(
            dimensions=get_score_function(args.strategy).dimensions,
            strategy=args.strategy,
        )

    overrides: dict[str, object] = {}
    if args.strategy is not None and args.strategy != search.strategy:
        overrides["strategy"] = args.strategy
        overrides["dimensions"] = get_score_function(args.strategy).dimensions
    for key in ("dimensions", "step", "keep", "workers", "block_size"):
        value = getattr(args, key)
        if value is not None:
            overrides[key] = value
    search = replace(search, **overrides)

    return RunConfig(
        search=search,
        output=OutputConfig(
            output_dir=args.output_dir,
            name=args.name or preset_name or search.strategy,
            columns=args.columns,
            ledger_path=args.ledger,
        ),
        show_progress=not args.no_progress,
    )


def _configure_logging(level: str, log_file: Path | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    log_file: Path | None = args.output_dir / LOG_FILENAME
    try:
        args.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_file = None
    _configure_logging(args.log_level, log_file)

    try:
        cfg = config_from_args(args)
        run_discovery(cfg)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except ResultWriteError as exc:
        logger.error("Could not save results: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
