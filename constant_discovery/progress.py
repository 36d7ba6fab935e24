"""progress.py — Console progress reporting for long scans."""

from __future__ import annotations

import sys
from typing import Protocol, TextIO

from tqdm import tqdm

# The bar counts tenths of a percent.
_PERMILLE = 1000

_BAR_FORMAT = "{desc}: {percentage:5.1f}%|{bar}| [{elapsed}<{remaining}]"


class ProgressSink(Protocol):
    """Receives ``(count, total)`` updates from a single writer."""

    def report(self, count: int, total: int) -> bool:
        """Return *True* if the update was rendered."""
        ...


class NullProgress:
    """Discards every update."""

    def report(self, count: int, total: int) -> bool:
        return False


class ConsoleProgress:
    """tqdm bar fed with ``(count, total)`` updates.

    The bar only advances when the percentage, truncated to one decimal,
    changes.  ``count >= total`` completes and closes it; later updates are
    ignored.

    Instances are picklable so the worker owning the first partition can
    carry its own copy into a subprocess.  The copy opens a transient bar on
    the worker's stderr and leaves the final line to the parent.
    """

    def __init__(self, stream: TextIO | None = None, desc: str = "Scanning", leave: bool = True) -> None:
        self._stream = stream
        self.desc = desc
        self.leave = leave
        self._bar: tqdm | None = None
        self._permille = 0
        self._finished = False

    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        state.update(_stream=None, _bar=None, leave=False)
        return state

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def permille(self) -> int:
        """Progress drawn so far, in tenths of a percent."""
        return self._permille

    def _open(self) -> tqdm:
        if self._bar is None:
            self._bar = tqdm(
                total=_PERMILLE,
                initial=self._permille,
                desc=self.desc,
                file=self._stream if self._stream is not None else sys.stderr,
                leave=self.leave,
                bar_format=_BAR_FORMAT,
            )
        return self._bar

    def report(self, count: int, total: int) -> bool:
        if self._finished or total <= 0:
            return False

        permille = _PERMILLE if count >= total else count * _PERMILLE // total
        if permille <= self._permille and permille < _PERMILLE:
            return False

        bar = self._open()
        bar.update(permille - self._permille)
        self._permille = permille
        if permille == _PERMILLE:
            self._finished = True
            bar.close()
        return True
