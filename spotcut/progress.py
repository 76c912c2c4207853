"""Progress bars shared by the components of one run."""

import sys

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm


class Progress:
    """Owns the tqdm bars of a run.

    Created by the top-level command and handed to every component that
    reports progress. Used as a context manager it also routes log records
    through tqdm so they do not tear the bars.
    """

    def __init__(self, enabled: bool | None = None):
        if enabled is None:
            enabled = sys.stderr.isatty()
        self.enabled = enabled
        self._bars: list[tqdm] = []
        self._redirect = None

    def bar(self, total: int | None = None, desc: str = "", unit: str = "it") -> tqdm:
        bar = tqdm(
            total=total,
            desc=desc,
            unit=unit,
            ncols=100,
            leave=False,
            disable=not self.enabled,
        )
        self._bars.append(bar)
        return bar

    def remove(self, bar: tqdm) -> None:
        bar.close()
        if bar in self._bars:
            self._bars.remove(bar)

    def close(self) -> None:
        for bar in list(self._bars):
            self.remove(bar)

    def __enter__(self) -> "Progress":
        self._redirect = logging_redirect_tqdm()
        self._redirect.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
        if self._redirect is not None:
            self._redirect.__exit__(*exc_info)
            self._redirect = None


def shrink(bar: tqdm, amount: int = 1) -> None:
    bar.total = max((bar.total or 0) - amount, 0)
    bar.refresh()
